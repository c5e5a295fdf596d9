from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TrendDirection(str, Enum):
    IMPROVING = "IMPROVING"
    DECLINING = "DECLINING"
    STABLE = "STABLE"


class PeriodType(str, Enum):
    YTD = "YTD"
    QUARTER = "QUARTER"
    MONTH = "MONTH"
    YEAR = "YEAR"


class PeriodSummary(BaseModel):
    """Projected vs actual over one time window."""
    label: str
    period_start: date
    period_end: date
    projected: float
    actual: float
    variance: float
    variance_percent: Optional[float] = None
    accuracy: float
    batch_count: int
    trip_count: int
    load_count: int


class WeeklySummary(PeriodSummary):
    year: int
    week: int


class MonthlySummary(PeriodSummary):
    year: int
    month: int


class QuarterlySummary(PeriodSummary):
    year: int
    quarter: int


class YearlySummary(PeriodSummary):
    year: int
    batches_completed: int
    trips_completed: int
    loads_delivered: int
    canceled_trips: int
    average_batch_revenue: float


class AccuracyTrendPoint(BaseModel):
    batch_id: str
    batch_name: str
    projected: float
    actual: float
    variance: float
    accuracy: float
    created_at: datetime


class AccuracyTrend(BaseModel):
    points: List[AccuracyTrendPoint] = Field(default_factory=list)
    delta: float = 0
    direction: TrendDirection = TrendDirection.STABLE


class TopPerformingBatch(BaseModel):
    id: str
    name: str
    created_at: datetime
    projected: float
    actual: float
    trip_count: int
    load_count: int
    accuracy: float


class ComparisonPeriod(BaseModel):
    year: int
    period_start: date
    period_end: date
    projected: float
    actual: float
    trip_count: int
    load_count: int
    profit: float


class GrowthMetric(BaseModel):
    change: float
    percent: Optional[float] = None  # Absent when the previous value is zero


class HistoricalComparison(BaseModel):
    period_type: PeriodType
    quarter: Optional[int] = None
    month: Optional[int] = None
    current_period: ComparisonPeriod
    previous_period: ComparisonPeriod
    revenue_growth: GrowthMetric
    trips_growth: GrowthMetric
    loads_growth: GrowthMetric
    profit_growth: GrowthMetric


class VarianceComponent(BaseModel):
    component: str
    projected: float
    actual: Optional[float] = None
    variance: Optional[float] = None
    variance_percent: Optional[float] = None


class TripVariance(BaseModel):
    trip_id: str
    trip_db_id: str
    projected_loads: int
    actual_loads: Optional[int] = None
    projected_pay: float
    actual_pay: Optional[float] = None
    variance: Optional[float] = None
    status: str


class BatchVarianceReport(BaseModel):
    batch_id: str
    batch_name: str
    accuracy: Optional[float] = None
    breakdown: List[VarianceComponent]
    trip_variances: List[TripVariance]


class AnalyticsOverview(BaseModel):
    yearly_summary: YearlySummary
    monthly_breakdown: List[MonthlySummary]
    quarterly_summary: List[QuarterlySummary]
    accuracy_trend: AccuracyTrend
    top_performing_batches: List[TopPerformingBatch]
    available_years: List[int]
