"""
Unit tests for the weekly scenario calculator.

Run with: pytest tests/test_forecast.py -v
"""

import pytest

from tourledger.schemas.forecast import ForecastScenario
from tourledger.services.forecast import calculate_forecast, generate_scaling_table


@pytest.fixture
def scenario():
    """Two trucks, seven nights, one tour each, four loads per tour."""
    return ForecastScenario(
        truck_count=2,
        nights_per_week=7,
        tours_per_truck=1,
        avg_loads_per_tour=4,
        dtr_rate=452,
        accessorial_rate=77,
    )


class TestCalculateForecast:
    """Revenue, cost and profit for one scenario."""

    def test_revenue(self, scenario):
        result = calculate_forecast(scenario, standard_hours_per_night=8)

        assert result.weekly_tours == 14
        assert result.tour_pay == pytest.approx(6328)
        assert result.weekly_loads == pytest.approx(56)
        assert result.accessorial_pay == pytest.approx(4312)
        assert result.weekly_revenue == pytest.approx(10640)
        assert result.revenue_per_tour == pytest.approx(760)

    def test_cost_without_overtime(self, scenario):
        """All hours are straight time when overtime is off: 140 h x $20."""
        result = calculate_forecast(scenario, standard_hours_per_night=8)

        assert result.labor_hours == pytest.approx(140)
        assert result.overtime_hours == 0
        assert result.labor_cost == pytest.approx(2800)
        assert result.payroll_tax == pytest.approx(214.2)
        assert result.workers_comp == pytest.approx(140)
        assert result.weekly_cost == pytest.approx(3154.2)
        assert result.weekly_profit == pytest.approx(7485.8)
        assert result.contribution_margin == pytest.approx(7485.8 / 14)

    def test_overtime_beyond_standard_night(self, scenario):
        """10 h nights with an 8 h standard: 2 h per truck-night at 1.5x."""
        result = calculate_forecast(
            scenario.model_copy(update={"include_overtime": True}), standard_hours_per_night=8
        )

        assert result.overtime_hours == pytest.approx(28)
        assert result.labor_cost == pytest.approx(112 * 20 + 28 * 20 * 1.5)

    def test_projection_periods(self, scenario):
        result = calculate_forecast(scenario, standard_hours_per_night=8)

        assert result.monthly_revenue == pytest.approx(10640 * 4.33)
        assert result.annual_revenue == pytest.approx(10640 * 52)
        assert result.annual_profit == pytest.approx(result.weekly_profit * 52)

    def test_overhead_reduces_profit(self, scenario):
        base = calculate_forecast(scenario, standard_hours_per_night=8)
        loaded = calculate_forecast(
            scenario.model_copy(update={"weekly_overhead": 500}), standard_hours_per_night=8
        )

        assert base.weekly_profit - loaded.weekly_profit == pytest.approx(500)

    def test_deterministic(self, scenario):
        assert calculate_forecast(scenario) == calculate_forecast(scenario)


class TestScalingTable:
    def test_one_row_per_truck_count(self, scenario):
        rows = generate_scaling_table(scenario)

        assert [row.truck_count for row in rows] == [1, 2, 3, 4, 5]

    def test_four_trucks_exactly_double_two(self, scenario):
        """With no overhead every weekly figure scales linearly in truck count."""
        rows = {row.truck_count: row for row in generate_scaling_table(scenario, [2, 4])}

        assert rows[4].weekly_revenue == 2 * rows[2].weekly_revenue
        assert rows[4].weekly_cost == 2 * rows[2].weekly_cost
        assert rows[4].weekly_profit == 2 * rows[2].weekly_profit
        assert rows[4].annual_profit == 2 * rows[2].annual_profit

    def test_rejects_invalid_scenario(self):
        with pytest.raises(ValueError):
            ForecastScenario(nights_per_week=8)
