from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tourledger.models.trip_batch import BatchStatus


class TripBatchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class TripBatchUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None


class TripBatchFilters(BaseModel):
    status: Optional[BatchStatus] = None
    search: Optional[str] = None
    sort_by: Literal["created_at", "name", "trip_count", "projected_total"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class TripBatchSummary(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str
    description: Optional[str] = None
    status: BatchStatus
    trip_count: int
    load_count: int
    canceled_count: int
    completed_count: int
    projected_tours: int
    projected_loads: int
    projected_tour_pay: float
    projected_accessorials: float
    projected_total: float
    actual_tours: Optional[int] = None
    actual_loads: Optional[int] = None
    actual_tour_pay: Optional[float] = None
    actual_accessorials: Optional[float] = None
    actual_adjustments: Optional[float] = None
    actual_total: Optional[float] = None
    variance: Optional[float] = None
    variance_percent: Optional[float] = None
    trips_imported_at: Optional[datetime] = None
    invoice_imported_at: Optional[datetime] = None
    created_at: datetime


class TripBatchDetail(TripBatchSummary):
    trip_file_hash: Optional[str] = None
    invoice_file_hash: Optional[str] = None
    projection_locked_at: Optional[datetime] = None


class DeleteBatchResult(BaseModel):
    deleted_trips: int
    deleted_invoices: int


class ClearTripsResult(BaseModel):
    deleted_trips: int


class DuplicateCheckRequest(BaseModel):
    file_hash: str = Field(..., min_length=1)


class DuplicateCheckResult(BaseModel):
    is_duplicate: bool
    matched_batch_id: Optional[str] = None
    matched_batch_name: Optional[str] = None
    imported_at: Optional[datetime] = None
