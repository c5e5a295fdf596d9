"""Weekly scenario calculator and truck-count scaling table."""

import logging
from typing import List, Optional, Sequence

from tourledger.core.config import get_settings
from tourledger.schemas.forecast import ForecastResult, ForecastScenario, ScalingRow

logger = logging.getLogger(__name__)

WEEKS_PER_MONTH = 4.33
WEEKS_PER_YEAR = 52
DEFAULT_TRUCK_COUNTS = (1, 2, 3, 4, 5)


def calculate_forecast(scenario: ForecastScenario, standard_hours_per_night: Optional[float] = None) -> ForecastResult:
    """Weekly revenue, cost and profit for one scenario. No rounding."""
    if standard_hours_per_night is None:
        standard_hours_per_night = get_settings().standard_hours_per_night

    truck_nights = scenario.truck_count * scenario.nights_per_week
    weekly_tours = truck_nights * scenario.tours_per_truck
    tour_pay = weekly_tours * scenario.dtr_rate
    weekly_loads = weekly_tours * scenario.avg_loads_per_tour
    accessorial_pay = weekly_loads * scenario.accessorial_rate
    weekly_revenue = tour_pay + accessorial_pay

    labor_hours = truck_nights * scenario.hours_per_night
    if scenario.include_overtime:
        overtime_per_night = max(0.0, scenario.hours_per_night - standard_hours_per_night)
    else:
        overtime_per_night = 0.0
    overtime_hours = truck_nights * overtime_per_night
    straight_hours = truck_nights * (scenario.hours_per_night - overtime_per_night)
    labor_cost = (
        straight_hours * scenario.hourly_wage
        + overtime_hours * scenario.hourly_wage * scenario.overtime_multiplier
    )

    payroll_tax = labor_cost * scenario.payroll_tax_rate
    workers_comp = labor_cost * scenario.workers_comp_rate
    weekly_cost = labor_cost + payroll_tax + workers_comp + scenario.weekly_overhead
    weekly_profit = weekly_revenue - weekly_cost

    return ForecastResult(
        weekly_tours=weekly_tours,
        weekly_loads=weekly_loads,
        revenue_per_tour=weekly_revenue / weekly_tours,
        tour_pay=tour_pay,
        accessorial_pay=accessorial_pay,
        weekly_revenue=weekly_revenue,
        labor_hours=labor_hours,
        overtime_hours=overtime_hours,
        labor_cost=labor_cost,
        payroll_tax=payroll_tax,
        workers_comp=workers_comp,
        overhead=scenario.weekly_overhead,
        weekly_cost=weekly_cost,
        weekly_profit=weekly_profit,
        contribution_margin=weekly_profit / truck_nights,
        monthly_revenue=weekly_revenue * WEEKS_PER_MONTH,
        annual_revenue=weekly_revenue * WEEKS_PER_YEAR,
        monthly_profit=weekly_profit * WEEKS_PER_MONTH,
        annual_profit=weekly_profit * WEEKS_PER_YEAR,
    )


def generate_scaling_table(
    scenario: ForecastScenario,
    truck_counts: Sequence[int] = DEFAULT_TRUCK_COUNTS,
    standard_hours_per_night: Optional[float] = None,
) -> List[ScalingRow]:
    rows = []
    for truck_count in truck_counts:
        result = calculate_forecast(
            scenario.model_copy(update={"truck_count": truck_count}),
            standard_hours_per_night=standard_hours_per_night,
        )
        rows.append(ScalingRow(truck_count=truck_count, **result.model_dump()))
    logger.debug(f"[Forecast] scaling table for trucks {list(truck_counts)}")
    return rows
