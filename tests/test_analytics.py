"""
Tests for forecast-accuracy analytics.

Run with: pytest tests/test_analytics.py -v
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest

from tourledger.models.trip import Trip, TripStage
from tourledger.models.trip_batch import BatchStatus, TripBatch
from tourledger.schemas.analytics import PeriodType, TrendDirection
from tourledger.services.analytics import (
    AnalyticsService,
    classify_trend,
    compute_accuracy,
    compute_variance,
    compute_variance_percent,
)

TODAY = date(2026, 5, 20)


@pytest.fixture
def service(db):
    return AnalyticsService(db)


@pytest.fixture
def add_batch(db):
    """Insert a batch directly with the given totals and creation time."""

    async def _add(created_at, projected, actual=None, trips=0, name=None, canceled=0):
        batch = TripBatch(
            id=str(uuid.uuid4()),
            name=name or f"Batch {created_at:%Y-%m-%d}",
            status=BatchStatus.INVOICED if actual is not None else BatchStatus.ACTIVE,
            trip_count=trips,
            projected_total=Decimal(projected),
            actual_total=Decimal(actual) if actual is not None else None,
            created_at=created_at,
        )
        db.add(batch)
        for index in range(trips):
            db.add(
                Trip(
                    id=str(uuid.uuid4()),
                    batch_id=batch.id,
                    trip_id=f"{batch.name}-{index}",
                    scheduled_date=created_at.date(),
                    stage=TripStage.CANCELED if index < canceled else TripStage.COMPLETED,
                    projected_loads=4,
                    actual_loads=3 if actual is not None else None,
                )
            )
        await db.commit()
        return batch

    return _add


class TestHelpers:
    def test_variance_sign(self):
        """Projected 1000, actual 1200: +200 and +20%."""
        assert compute_variance(1000, 1200) == 200
        assert compute_variance_percent(1000, 1200) == pytest.approx(20.0)

    def test_variance_percent_absent_without_projection(self):
        assert compute_variance_percent(0, 500) is None

    def test_accuracy_floor(self):
        """A miss larger than the projection scores 0, never negative."""
        assert compute_accuracy(1000, 2500) == 0
        assert compute_accuracy(1000, 0) == 0

    def test_accuracy_large_miss(self):
        """Projected 1000, actual 100: 90% off leaves 10 points."""
        assert compute_accuracy(1000, 100) == pytest.approx(10)

    def test_accuracy_symmetric(self):
        assert compute_accuracy(1000, 900) == pytest.approx(90)
        assert compute_accuracy(1000, 1100) == pytest.approx(90)

    def test_accuracy_without_projection(self):
        assert compute_accuracy(0, 0) == 100
        assert compute_accuracy(0, 10) == 0

    @pytest.mark.parametrize(
        "accuracies, direction",
        [
            ([80.0, 85.0, 90.0], TrendDirection.IMPROVING),
            ([90.0, 85.0, 80.0], TrendDirection.DECLINING),
            ([90.0, 70.0, 91.5], TrendDirection.STABLE),
            ([90.0], TrendDirection.STABLE),
        ],
    )
    def test_classify_trend(self, accuracies, direction):
        assert classify_trend(accuracies, 2.0)[1] == direction


class TestPeriodSummaries:
    async def test_yearly_summary(self, service, add_batch):
        await add_batch(datetime(2026, 1, 12), "1000", "1200", trips=2)
        await add_batch(datetime(2026, 3, 2), "500", trips=3, canceled=1)
        await add_batch(datetime(2026, 6, 1), "700", "700")  # after today
        await add_batch(datetime(2025, 12, 29), "900", "900")  # previous year

        summary = await service.yearly_summary(2026, TODAY)

        assert summary.projected == pytest.approx(1500)
        assert summary.actual == pytest.approx(1200)
        assert summary.batch_count == 2
        assert summary.batches_completed == 1
        assert summary.canceled_trips == 1
        assert summary.trips_completed == 4
        assert summary.loads_delivered == 6
        assert summary.average_batch_revenue == pytest.approx(1200)

    async def test_monthly_breakdown_stops_at_current_month(self, service, add_batch):
        await add_batch(datetime(2026, 1, 12), "1000", "1200", trips=2)

        months = await service.monthly_breakdown(2026, TODAY)
        past_year = await service.monthly_breakdown(2025, TODAY)

        assert [row.month for row in months] == [1, 2, 3, 4, 5]
        assert len(past_year) == 12
        assert months[0].variance == pytest.approx(200)
        assert months[0].variance_percent == pytest.approx(20.0)
        assert months[0].load_count == 6
        assert months[1].variance_percent is None
        assert months[1].accuracy == 100

    async def test_quarterly_summary(self, service, add_batch):
        await add_batch(datetime(2026, 2, 2), "1000", "900")
        await add_batch(datetime(2026, 4, 6), "1000", "1000")

        quarters = await service.quarterly_summary(2026, TODAY)

        assert [row.quarter for row in quarters] == [1, 2]
        assert quarters[0].accuracy == pytest.approx(90)
        assert quarters[1].accuracy == pytest.approx(100)

    async def test_weekly_breakdown_skips_empty_weeks(self, service, add_batch):
        await add_batch(datetime(2026, 1, 5, 9), "1000", "1000")
        await add_batch(datetime(2026, 1, 8, 9), "500")
        await add_batch(datetime(2026, 2, 16, 9), "800", "880")

        weeks = await service.weekly_breakdown(2026, TODAY)

        assert [row.label for row in weeks] == ["2026-W02", "2026-W08"]
        assert weeks[0].period_start == date(2026, 1, 5)
        assert weeks[0].batch_count == 2
        assert weeks[1].variance == pytest.approx(80)


class TestBatchLevel:
    async def test_accuracy_trend_improving(self, service, add_batch):
        await add_batch(datetime(2026, 1, 5), "1000", "800")
        await add_batch(datetime(2026, 1, 12), "1000", "900")
        await add_batch(datetime(2026, 1, 19), "1000", "980")
        await add_batch(datetime(2026, 1, 26), "1000")  # not invoiced

        trend = await service.accuracy_trend()

        assert [point.accuracy for point in trend.points] == pytest.approx([80, 90, 98])
        assert trend.delta == pytest.approx(18)
        assert trend.direction == TrendDirection.IMPROVING

    async def test_accuracy_trend_keeps_last_n(self, service, add_batch):
        for day in (5, 12, 19):
            await add_batch(datetime(2026, 1, day), "1000", "1000")

        trend = await service.accuracy_trend(last_n=2)

        assert [point.created_at.day for point in trend.points] == [12, 19]
        assert trend.direction == TrendDirection.STABLE

    async def test_top_performing_batches(self, service, add_batch):
        await add_batch(datetime(2026, 1, 5), "1000", "800", name="low")
        await add_batch(datetime(2026, 1, 12), "1000", "1300", name="high")
        await add_batch(datetime(2025, 6, 1), "1000", "5000", name="last year")

        top = await service.top_performing_batches(2026, limit=5)

        assert [batch.name for batch in top] == ["high", "low"]

    async def test_available_years(self, service, add_batch):
        assert await service.available_years(TODAY) == [2026]

        await add_batch(datetime(2024, 3, 1), "1000")
        await add_batch(datetime(2026, 3, 1), "1000")

        assert await service.available_years(TODAY) == [2026, 2024]


class TestHistoricalComparison:
    async def test_year_over_year(self, service, add_batch):
        await add_batch(datetime(2025, 2, 3), "1000", "1000", trips=2)
        await add_batch(datetime(2026, 2, 2), "1000", "1500", trips=3)

        comparison = await service.historical_comparison(2026, PeriodType.YEAR, TODAY)

        assert comparison.revenue_growth.change == pytest.approx(500)
        assert comparison.revenue_growth.percent == pytest.approx(50)
        assert comparison.trips_growth.change == 1
        assert comparison.profit_growth.change == pytest.approx(500)

    async def test_growth_percent_absent_when_previous_zero(self, service, add_batch):
        await add_batch(datetime(2026, 2, 2), "1000", "1500", trips=3)

        comparison = await service.historical_comparison(2026, PeriodType.QUARTER, TODAY, quarter=1)

        assert comparison.previous_period.actual == 0
        assert comparison.revenue_growth.percent is None
        assert comparison.trips_growth.percent is None

    async def test_ytd_window_matches_today(self, service, add_batch):
        await add_batch(datetime(2025, 5, 10), "1000", "1000")
        await add_batch(datetime(2025, 8, 10), "1000", "4000")
        await add_batch(datetime(2026, 3, 10), "1000", "1100")

        comparison = await service.historical_comparison(2026, PeriodType.YTD, TODAY)

        assert comparison.previous_period.period_end == date(2025, 5, 20)
        assert comparison.previous_period.actual == pytest.approx(1000)

    async def test_no_revenue_in_either_period(self, service, add_batch):
        await add_batch(datetime(2026, 2, 2), "1000")

        assert await service.historical_comparison(2026, PeriodType.MONTH, TODAY, month=2) is None

    async def test_profit_uses_expense_provider(self, db, add_batch):
        async def expenses(start, end):
            return Decimal("300") if start.year == 2026 else Decimal("0")

        await add_batch(datetime(2026, 2, 2), "1000", "1000")
        service = AnalyticsService(db, expense_provider=expenses)

        comparison = await service.historical_comparison(2026, PeriodType.YEAR, TODAY)

        assert comparison.current_period.profit == pytest.approx(700)


class TestBatchVariance:
    async def test_breakdown_and_trip_status(self, db, service, add_batch):
        batch = await add_batch(datetime(2026, 5, 1), "1044.18", "1100.00")
        batch.projected_tour_pay = Decimal("904.18")
        batch.projected_accessorials = Decimal("140.00")
        batch.actual_tour_pay = Decimal("904.18")
        batch.actual_accessorials = Decimal("215.82")
        batch.actual_adjustments = Decimal("-20.00")
        db.add_all(
            [
                Trip(id=str(uuid.uuid4()), batch_id=batch.id, trip_id="A", scheduled_date=date(2026, 5, 1),
                     stage=TripStage.COMPLETED, projected_loads=3, actual_revenue=Decimal("550.00")),
                Trip(id=str(uuid.uuid4()), batch_id=batch.id, trip_id="B", scheduled_date=date(2026, 5, 2),
                     stage=TripStage.CANCELED, projected_loads=2),
                Trip(id=str(uuid.uuid4()), batch_id=batch.id, trip_id="C", scheduled_date=date(2026, 5, 3),
                     stage=TripStage.UPCOMING, projected_loads=2, actual_loads=2),
                Trip(id=str(uuid.uuid4()), batch_id=batch.id, trip_id="D", scheduled_date=date(2026, 5, 4),
                     stage=TripStage.UPCOMING, projected_loads=1),
                Trip(id=str(uuid.uuid4()), batch_id=batch.id, trip_id="E", scheduled_date=date(2026, 5, 30),
                     stage=TripStage.UPCOMING, projected_loads=1),
            ]
        )
        await db.commit()

        report = await service.batch_variance(batch.id, TODAY)

        assert [row.component for row in report.breakdown] == ["Tour Pay", "Accessorials", "Adjustments", "TOTAL"]
        assert report.breakdown[3].variance == pytest.approx(55.82)
        assert report.breakdown[2].projected == 0
        assert [row.status for row in report.trip_variances] == [
            "Invoiced", "Canceled", "Updated", "Pending", "Scheduled",
        ]
        assert report.trip_variances[0].variance == pytest.approx(550 - 522.09)
