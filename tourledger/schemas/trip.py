from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from tourledger.models.trip import STOP_SLOTS, TripStage


class ImportMode(str, Enum):
    APPEND = "APPEND"    # existing trip ids are skipped
    REPLACE = "REPLACE"  # existing trip ids are updated in place


class StopSlot(BaseModel):
    name: Optional[str] = None
    planned_arrival: Optional[datetime] = None


class LoadCandidate(BaseModel):
    """One load row from the scheduler export, already normalized."""
    load_id: str
    stops: List[StopSlot] = Field(default_factory=list, max_length=STOP_SLOTS)
    is_bobtail: bool = False
    estimated_distance: float = 0
    facility_sequence: Optional[str] = None
    load_execution_status: Optional[str] = None

    @property
    def stop_names(self) -> List[str]:
        return [stop.name for stop in self.stops if stop.name and stop.name.strip()]


class TripCandidate(BaseModel):
    trip_id: str
    scheduled_date: date
    stage: TripStage = TripStage.UPCOMING
    equipment_type: Optional[str] = None
    operator_type: Optional[str] = None
    loads: List[LoadCandidate] = Field(default_factory=list)


class TripImportRequest(BaseModel):
    trips: List[TripCandidate]
    mode: ImportMode = ImportMode.APPEND
    file_hash: Optional[str] = None
    override_duplicate: bool = False


class TripImportResult(BaseModel):
    batch_id: str
    mode: ImportMode
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    canceled: int = 0
    skipped_trip_ids: List[str] = Field(default_factory=list)
    trip_ids_in_other_batches: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    # Projection for the non-skipped trips of this call
    projected_tours: int = 0
    projected_loads: int = 0
    active_load_count: int = 0
    projected_tour_pay: float = 0
    projected_accessorials: float = 0
    projected_total: float = 0


class TripLoadResponse(BaseModel):
    id: str
    load_id: str
    sequence: int
    is_bobtail: bool
    estimated_distance: float
    stops: List[StopSlot]
    claimed_stops: List[str] = Field(default_factory=list, description="Delivery stops counted for this load")


class TripResponse(BaseModel):
    id: str
    batch_id: str
    trip_id: str
    stage: TripStage
    scheduled_date: date
    equipment_type: Optional[str] = None
    operator_type: Optional[str] = None
    projected_loads: int
    actual_loads: Optional[int] = None
    projected_revenue: float
    actual_revenue: Optional[float] = None
    variance: Optional[float] = None
    notes: Optional[str] = None
    total_load_count: int = 0
    visible_loads: List[TripLoadResponse] = Field(default_factory=list)


class TripUpdate(BaseModel):
    actual_loads: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    stage: Optional[TripStage] = None
