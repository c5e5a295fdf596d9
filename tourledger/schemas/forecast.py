from typing import List

from pydantic import BaseModel, Field, PositiveInt


class ForecastScenario(BaseModel):
    """Weekly operating scenario. Defaults match the standard two-truck, seven-night plan."""
    truck_count: int = Field(2, ge=1)
    nights_per_week: int = Field(7, ge=1, le=7)
    tours_per_truck: int = Field(1, ge=1)
    avg_loads_per_tour: float = Field(4, ge=0)
    dtr_rate: float = Field(452, ge=0)
    accessorial_rate: float = Field(77, ge=0)
    hourly_wage: float = Field(20, ge=0)
    hours_per_night: float = Field(10, ge=0)
    include_overtime: bool = False
    overtime_multiplier: float = Field(1.5, ge=1)
    payroll_tax_rate: float = Field(0.0765, ge=0, le=1)
    workers_comp_rate: float = Field(0.05, ge=0, le=1)
    weekly_overhead: float = Field(0, ge=0)


class ForecastResult(BaseModel):
    weekly_tours: int
    weekly_loads: float
    revenue_per_tour: float
    tour_pay: float
    accessorial_pay: float
    weekly_revenue: float
    labor_hours: float
    overtime_hours: float
    labor_cost: float
    payroll_tax: float
    workers_comp: float
    overhead: float
    weekly_cost: float
    weekly_profit: float
    contribution_margin: float  # Per truck per operating night
    monthly_revenue: float
    annual_revenue: float
    monthly_profit: float
    annual_profit: float


class ScalingRow(ForecastResult):
    truck_count: int


class ScalingTableRequest(BaseModel):
    scenario: ForecastScenario = Field(default_factory=ForecastScenario)
    truck_counts: List[PositiveInt] = Field(default_factory=lambda: [1, 2, 3, 4, 5], min_length=1)
