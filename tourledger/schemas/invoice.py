"""Invoice line items as a closed set of variants keyed on ``item_type``."""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from tourledger.models.invoice import InvoiceItemType

ZERO = Decimal("0")


class _LineItemBase(BaseModel):
    trip_id: str
    gross_pay: Decimal = ZERO
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    comments: Optional[str] = None

    @property
    def accessorial_amount(self) -> Decimal:
        return ZERO


class TourCompletedItem(_LineItemBase):
    item_type: Literal["TOUR_COMPLETED"] = "TOUR_COMPLETED"
    base_rate: Decimal = ZERO
    fuel_surcharge: Decimal = ZERO
    distance_miles: float = 0
    duration_hours: float = 0

    @property
    def accessorial_amount(self) -> Decimal:
        return self.fuel_surcharge

    @property
    def reports_work(self) -> bool:
        return self.duration_hours > 0 or self.base_rate > 0


class LoadCompletedItem(_LineItemBase):
    item_type: Literal["LOAD_COMPLETED"] = "LOAD_COMPLETED"
    load_id: Optional[str] = None
    base_rate: Decimal = ZERO
    fuel_surcharge: Decimal = ZERO
    detention: Decimal = ZERO
    distance_miles: float = 0
    duration_hours: float = 0

    @property
    def accessorial_amount(self) -> Decimal:
        return self.fuel_surcharge


class AdjustmentItem(_LineItemBase):
    item_type: Literal["ADJUSTMENT"] = "ADJUSTMENT"
    load_id: Optional[str] = None
    detention: Decimal = ZERO
    tonu: Decimal = ZERO


class DisputeAdjustmentItem(_LineItemBase):
    item_type: Literal["ADJUSTMENT_DISPUTE"] = "ADJUSTMENT_DISPUTE"
    load_id: Optional[str] = None


LineItem = Annotated[
    Union[TourCompletedItem, LoadCompletedItem, AdjustmentItem, DisputeAdjustmentItem],
    Field(discriminator="item_type"),
]

ADJUSTMENT_TYPES = (AdjustmentItem, DisputeAdjustmentItem)


class InvoiceImportRequest(BaseModel):
    line_items: List[LineItem]
    file_hash: str = Field(..., min_length=1)
    invoice_number: Optional[str] = None
    override_duplicate: bool = False


class RevenueBreakdown(BaseModel):
    actual_tours: int = 0
    actual_loads: int = 0
    actual_tour_pay: float = 0
    actual_accessorials: float = 0
    actual_adjustments: float = 0
    actual_total: float = 0


class InvoiceImportResult(BaseModel):
    batch_id: str
    invoice_import_id: str
    line_item_count: int
    matched_trips: int
    unmatched_trips: int
    unmatched_trip_ids: List[str] = Field(default_factory=list)
    revenue: RevenueBreakdown
    projected_total: float
    variance: float
    variance_percent: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


class InvoiceLineItemResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    trip_id: str
    load_id: Optional[str] = None
    item_type: InvoiceItemType
    gross_pay: float
    base_rate: float
    fuel_surcharge: float
    detention: float
    tonu: float
    distance_miles: float
    duration_hours: float
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    comments: Optional[str] = None
    matched: bool


class InvoiceImportResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    batch_id: str
    invoice_number: Optional[str] = None
    file_hash: str
    line_item_count: int
    matched_trip_count: int
    unmatched_trip_count: int
    created_at: datetime
    line_items: List[InvoiceLineItemResponse] = Field(default_factory=list)
