"""
Forecast-accuracy analytics.

Every rollup is recomputed on read from batch cached totals. A batch falls in
a window by its ``created_at``. Projected revenue sums every batch in the
window; actual revenue sums only the batches with an invoice applied.
"""

from __future__ import annotations

import calendar
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import case, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.core.config import get_settings
from tourledger.models.trip import Trip, TripStage
from tourledger.models.trip_batch import BatchStatus, TripBatch
from tourledger.schemas.analytics import (
    AccuracyTrend,
    AccuracyTrendPoint,
    AnalyticsOverview,
    BatchVarianceReport,
    ComparisonPeriod,
    GrowthMetric,
    HistoricalComparison,
    MonthlySummary,
    PeriodType,
    QuarterlySummary,
    TopPerformingBatch,
    TrendDirection,
    TripVariance,
    VarianceComponent,
    WeeklySummary,
    YearlySummary,
)
from tourledger.services.revenue import RevenueModel
from tourledger.services.trip_batch import TripBatchService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

ExpenseProvider = Callable[[date, date], Awaitable[Decimal]]


async def no_expenses(start: date, end: date) -> Decimal:
    return ZERO


# ----------------------------------------------------------------------
# Pure helpers
# ----------------------------------------------------------------------


def compute_variance(projected, actual) -> float:
    return float(actual) - float(projected)


def compute_variance_percent(projected, actual) -> Optional[float]:
    projected = float(projected)
    if projected == 0:
        return None
    return (float(actual) - projected) / projected * 100


def compute_accuracy(projected, actual) -> float:
    """0-100 score: 100 is a perfect projection, floored at 0."""
    projected = float(projected)
    actual = float(actual)
    if projected == 0:
        return 100.0 if actual == 0 else 0.0
    return max(0.0, (1 - abs(actual - projected) / projected) * 100)


def classify_trend(accuracies: Sequence[float], threshold: float = 2.0) -> Tuple[float, TrendDirection]:
    if len(accuracies) < 2:
        return 0.0, TrendDirection.STABLE
    delta = accuracies[-1] - accuracies[0]
    if delta > threshold:
        return delta, TrendDirection.IMPROVING
    if delta < -threshold:
        return delta, TrendDirection.DECLINING
    return delta, TrendDirection.STABLE


def growth(current: float, previous: float) -> GrowthMetric:
    change = current - previous
    percent = change / abs(previous) * 100 if previous != 0 else None
    return GrowthMetric(change=change, percent=percent)


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def quarter_bounds(year: int, quarter: int) -> Tuple[date, date]:
    first_month = (quarter - 1) * 3 + 1
    return date(year, first_month, 1), month_bounds(year, first_month + 2)[1]


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def _same_day_in_year(day: date, year: int) -> date:
    # Feb 29 maps to Feb 28 in non-leap years
    last = calendar.monthrange(year, day.month)[1]
    return date(year, day.month, min(day.day, last))


@dataclass
class BatchStats:
    """One batch plus trip-level counts pulled in a single aggregate query."""

    batch: TripBatch
    load_total: int = 0  # actual loads where entered, projected otherwise
    trips_completed: int = 0
    loads_delivered: int = 0
    canceled_trips: int = 0

    @property
    def projected(self) -> Decimal:
        return Decimal(self.batch.projected_total or 0)

    @property
    def actual(self) -> Optional[Decimal]:
        if self.batch.actual_total is None:
            return None
        return Decimal(self.batch.actual_total)


@dataclass
class WindowTotals:
    projected: Decimal = ZERO
    actual: Decimal = ZERO
    batch_count: int = 0
    invoiced_count: int = 0
    trip_count: int = 0
    load_count: int = 0
    trips_completed: int = 0
    loads_delivered: int = 0
    canceled_trips: int = 0

    @classmethod
    def of(cls, stats: Sequence[BatchStats]) -> "WindowTotals":
        totals = cls()
        for item in stats:
            totals.projected += item.projected
            if item.actual is not None:
                totals.actual += item.actual
                totals.invoiced_count += 1
            totals.batch_count += 1
            totals.trip_count += item.batch.trip_count or 0
            totals.load_count += item.load_total
            totals.trips_completed += item.trips_completed
            totals.loads_delivered += item.loads_delivered
            totals.canceled_trips += item.canceled_trips
        return totals

    def period_fields(self) -> dict:
        return {
            "projected": float(self.projected),
            "actual": float(self.actual),
            "variance": compute_variance(self.projected, self.actual),
            "variance_percent": compute_variance_percent(self.projected, self.actual),
            "accuracy": compute_accuracy(self.projected, self.actual),
            "batch_count": self.batch_count,
            "trip_count": self.trip_count,
            "load_count": self.load_count,
        }


class AnalyticsService:
    def __init__(
        self,
        db: AsyncSession,
        expense_provider: ExpenseProvider = no_expenses,
        revenue: Optional[RevenueModel] = None,
    ) -> None:
        self.db = db
        self.expense_provider = expense_provider
        self.revenue = revenue or RevenueModel.from_settings()
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _batch_stats(self, start: date, end: date) -> List[BatchStats]:
        """Batches created on ``start`` through ``end`` inclusive, oldest first."""
        result = await self.db.execute(
            select(TripBatch)
            .where(
                TripBatch.created_at >= datetime.combine(start, datetime.min.time()),
                TripBatch.created_at < datetime.combine(end + timedelta(days=1), datetime.min.time()),
            )
            .order_by(TripBatch.created_at.asc())
        )
        batches = list(result.scalars().all())
        if not batches:
            return []

        completed = case(
            ((Trip.stage == TripStage.COMPLETED) | (Trip.actual_loads.is_not(None)), 1),
            else_=0,
        )
        canceled = case((Trip.stage == TripStage.CANCELED, 1), else_=0)
        trip_rows = await self.db.execute(
            select(
                Trip.batch_id,
                func.coalesce(func.sum(func.coalesce(Trip.actual_loads, Trip.projected_loads)), 0),
                func.coalesce(func.sum(completed), 0),
                func.coalesce(func.sum(func.coalesce(Trip.actual_loads, 0)), 0),
                func.coalesce(func.sum(canceled), 0),
            )
            .where(Trip.batch_id.in_([batch.id for batch in batches]))
            .group_by(Trip.batch_id)
        )
        by_batch: Dict[str, tuple] = {row[0]: row[1:] for row in trip_rows.all()}

        stats = []
        for batch in batches:
            load_total, trips_completed, loads_delivered, canceled_trips = by_batch.get(batch.id, (0, 0, 0, 0))
            stats.append(
                BatchStats(
                    batch=batch,
                    load_total=int(load_total),
                    trips_completed=int(trips_completed),
                    loads_delivered=int(loads_delivered),
                    canceled_trips=int(canceled_trips),
                )
            )
        return stats

    @staticmethod
    def _cutoff(year: int, today: date) -> date:
        year_end = date(year, 12, 31)
        return min(year_end, today) if year == today.year else year_end

    # ------------------------------------------------------------------
    # Period summaries
    # ------------------------------------------------------------------

    async def yearly_summary(self, year: int, today: date) -> YearlySummary:
        start = date(year, 1, 1)
        end = self._cutoff(year, today)
        totals = WindowTotals.of(await self._batch_stats(start, end))
        average = totals.actual / totals.invoiced_count if totals.invoiced_count else ZERO
        return YearlySummary(
            label=str(year),
            period_start=start,
            period_end=end,
            year=year,
            batches_completed=totals.invoiced_count,
            trips_completed=totals.trips_completed,
            loads_delivered=totals.loads_delivered,
            canceled_trips=totals.canceled_trips,
            average_batch_revenue=float(average),
            **totals.period_fields(),
        )

    async def monthly_breakdown(self, year: int, today: date) -> List[MonthlySummary]:
        last_month = today.month if year == today.year else 12
        stats = await self._batch_stats(date(year, 1, 1), month_bounds(year, last_month)[1])

        rows = []
        for month in range(1, last_month + 1):
            start, end = month_bounds(year, month)
            in_month = [item for item in stats if start <= item.batch.created_at.date() <= end]
            rows.append(
                MonthlySummary(
                    label=f"{calendar.month_abbr[month]} {year}",
                    period_start=start,
                    period_end=end,
                    year=year,
                    month=month,
                    **WindowTotals.of(in_month).period_fields(),
                )
            )
        return rows

    async def quarterly_summary(self, year: int, today: date) -> List[QuarterlySummary]:
        last_quarter = quarter_of(today) if year == today.year else 4
        stats = await self._batch_stats(date(year, 1, 1), quarter_bounds(year, last_quarter)[1])

        rows = []
        for quarter in range(1, last_quarter + 1):
            start, end = quarter_bounds(year, quarter)
            in_quarter = [item for item in stats if start <= item.batch.created_at.date() <= end]
            rows.append(
                QuarterlySummary(
                    label=f"Q{quarter} {year}",
                    period_start=start,
                    period_end=end,
                    year=year,
                    quarter=quarter,
                    **WindowTotals.of(in_quarter).period_fields(),
                )
            )
        return rows

    async def weekly_breakdown(self, year: int, today: date) -> List[WeeklySummary]:
        """One row per ISO week (Monday start) holding at least one batch."""
        stats = await self._batch_stats(date(year, 1, 1), self._cutoff(year, today))

        weeks: "OrderedDict[Tuple[int, int], List[BatchStats]]" = OrderedDict()
        for item in stats:
            iso = item.batch.created_at.date().isocalendar()
            weeks.setdefault((iso[0], iso[1]), []).append(item)

        rows = []
        for (iso_year, week), items in weeks.items():
            monday = date.fromisocalendar(iso_year, week, 1)
            rows.append(
                WeeklySummary(
                    label=f"{iso_year}-W{week:02d}",
                    period_start=monday,
                    period_end=monday + timedelta(days=6),
                    year=iso_year,
                    week=week,
                    **WindowTotals.of(items).period_fields(),
                )
            )
        return rows

    # ------------------------------------------------------------------
    # Batch level
    # ------------------------------------------------------------------

    async def accuracy_trend(self, last_n: Optional[int] = None) -> AccuracyTrend:
        last_n = last_n or self.settings.accuracy_trend_window
        result = await self.db.execute(
            select(TripBatch)
            .where(TripBatch.status == BatchStatus.INVOICED, TripBatch.actual_total.is_not(None))
            .order_by(TripBatch.created_at.desc())
            .limit(last_n)
        )
        batches = list(reversed(result.scalars().all()))

        points = [
            AccuracyTrendPoint(
                batch_id=batch.id,
                batch_name=batch.name,
                projected=float(batch.projected_total),
                actual=float(batch.actual_total),
                variance=compute_variance(batch.projected_total, batch.actual_total),
                accuracy=compute_accuracy(batch.projected_total, batch.actual_total),
                created_at=batch.created_at,
            )
            for batch in batches
        ]
        delta, direction = classify_trend(
            [point.accuracy for point in points], self.settings.trend_threshold_points
        )
        return AccuracyTrend(points=points, delta=delta, direction=direction)

    async def top_performing_batches(self, year: int, limit: int = 5) -> List[TopPerformingBatch]:
        start = datetime(year, 1, 1)
        result = await self.db.execute(
            select(TripBatch)
            .where(
                TripBatch.status == BatchStatus.INVOICED,
                TripBatch.actual_total.is_not(None),
                TripBatch.created_at >= start,
                TripBatch.created_at < datetime(year + 1, 1, 1),
            )
            .order_by(TripBatch.actual_total.desc())
            .limit(limit)
        )
        return [
            TopPerformingBatch(
                id=batch.id,
                name=batch.name,
                created_at=batch.created_at,
                projected=float(batch.projected_total),
                actual=float(batch.actual_total),
                trip_count=batch.trip_count,
                load_count=batch.load_count,
                accuracy=compute_accuracy(batch.projected_total, batch.actual_total),
            )
            for batch in result.scalars().all()
        ]

    async def batch_variance(self, batch_id: str, today: date) -> BatchVarianceReport:
        batch = await TripBatchService(self.db, revenue=self.revenue).get_batch(batch_id)
        invoiced = batch.actual_total is not None

        def component(name: str, projected, actual) -> VarianceComponent:
            if not invoiced:
                return VarianceComponent(component=name, projected=float(projected))
            return VarianceComponent(
                component=name,
                projected=float(projected),
                actual=float(actual or 0),
                variance=compute_variance(projected, actual or 0),
                variance_percent=compute_variance_percent(projected, actual or 0),
            )

        breakdown = [
            component("Tour Pay", batch.projected_tour_pay, batch.actual_tour_pay),
            component("Accessorials", batch.projected_accessorials, batch.actual_accessorials),
            component("Adjustments", ZERO, batch.actual_adjustments),
            component("TOTAL", batch.projected_total, batch.actual_total),
        ]

        result = await self.db.execute(
            select(Trip).where(Trip.batch_id == batch_id).order_by(Trip.scheduled_date.asc(), Trip.trip_id.asc())
        )
        trip_variances = []
        for trip in result.scalars().all():
            projected_pay = self.revenue.trip_revenue(trip.stage)
            actual_pay = float(trip.actual_revenue) if trip.actual_revenue is not None else None
            trip_variances.append(
                TripVariance(
                    trip_id=trip.trip_id,
                    trip_db_id=trip.id,
                    projected_loads=trip.projected_loads,
                    actual_loads=trip.actual_loads,
                    projected_pay=float(projected_pay),
                    actual_pay=actual_pay,
                    variance=actual_pay - float(projected_pay) if actual_pay is not None else None,
                    status=self._trip_status(trip, today),
                )
            )

        return BatchVarianceReport(
            batch_id=batch.id,
            batch_name=batch.name,
            accuracy=compute_accuracy(batch.projected_total, batch.actual_total) if invoiced else None,
            breakdown=breakdown,
            trip_variances=trip_variances,
        )

    @staticmethod
    def _trip_status(trip: Trip, today: date) -> str:
        if trip.stage == TripStage.CANCELED:
            return "Canceled"
        if trip.actual_revenue is not None:
            return "Invoiced"
        if trip.actual_loads is not None:
            return "Updated"
        if trip.scheduled_date < today:
            return "Pending"
        return "Scheduled"

    # ------------------------------------------------------------------
    # Comparisons
    # ------------------------------------------------------------------

    def _comparison_window(
        self, year: int, period_type: PeriodType, quarter: Optional[int], month: Optional[int], today: date
    ) -> Tuple[date, date]:
        if period_type == PeriodType.MONTH:
            return month_bounds(year, month)
        if period_type == PeriodType.QUARTER:
            return quarter_bounds(year, quarter)
        if period_type == PeriodType.YTD:
            return date(year, 1, 1), _same_day_in_year(today, year)
        return date(year, 1, 1), date(year, 12, 31)

    async def _comparison_period(
        self, year: int, period_type: PeriodType, quarter: Optional[int], month: Optional[int], today: date
    ) -> ComparisonPeriod:
        start, end = self._comparison_window(year, period_type, quarter, month, today)
        totals = WindowTotals.of(await self._batch_stats(start, end))
        expenses = await self.expense_provider(start, end)
        return ComparisonPeriod(
            year=year,
            period_start=start,
            period_end=end,
            projected=float(totals.projected),
            actual=float(totals.actual),
            trip_count=totals.trip_count,
            load_count=totals.load_count,
            profit=float(totals.actual - Decimal(expenses)),
        )

    async def historical_comparison(
        self,
        current_year: int,
        period_type: PeriodType,
        today: date,
        quarter: Optional[int] = None,
        month: Optional[int] = None,
    ) -> Optional[HistoricalComparison]:
        """Same period this year vs last year. None when neither period has invoiced revenue."""
        if period_type == PeriodType.QUARTER:
            quarter = quarter or quarter_of(today)
        if period_type == PeriodType.MONTH:
            month = month or today.month

        current = await self._comparison_period(current_year, period_type, quarter, month, today)
        previous = await self._comparison_period(current_year - 1, period_type, quarter, month, today)

        if current.actual == 0 and previous.actual == 0:
            logger.info(f"[AnalyticsService.historical_comparison] No revenue for {current_year} or {current_year - 1}")
            return None

        return HistoricalComparison(
            period_type=period_type,
            quarter=quarter if period_type == PeriodType.QUARTER else None,
            month=month if period_type == PeriodType.MONTH else None,
            current_period=current,
            previous_period=previous,
            revenue_growth=growth(current.actual, previous.actual),
            trips_growth=growth(current.trip_count, previous.trip_count),
            loads_growth=growth(current.load_count, previous.load_count),
            profit_growth=growth(current.profit, previous.profit),
        )

    async def available_years(self, today: date) -> List[int]:
        result = await self.db.execute(select(extract("year", TripBatch.created_at)).distinct())
        years = sorted({int(year) for year in result.scalars().all() if year is not None}, reverse=True)
        return years or [today.year]

    async def analytics_overview(self, year: int, today: date) -> AnalyticsOverview:
        return AnalyticsOverview(
            yearly_summary=await self.yearly_summary(year, today),
            monthly_breakdown=await self.monthly_breakdown(year, today),
            quarterly_summary=await self.quarterly_summary(year, today),
            accuracy_trend=await self.accuracy_trend(),
            top_performing_batches=await self.top_performing_batches(year),
            available_years=await self.available_years(today),
        )
