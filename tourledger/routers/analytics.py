from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.api.envelope import run_action
from tourledger.core.db import get_db
from tourledger.schemas.analytics import (
    AccuracyTrend,
    AnalyticsOverview,
    HistoricalComparison,
    MonthlySummary,
    PeriodType,
    QuarterlySummary,
    TopPerformingBatch,
    WeeklySummary,
    YearlySummary,
)
from tourledger.schemas.common import ActionResponse
from tourledger.services.analytics import AnalyticsService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)


def _today() -> date:
    return date.today()


@router.get("/overview", response_model=ActionResponse[AnalyticsOverview])
async def overview(
    year: Optional[int] = Query(None),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: service.analytics_overview(year or today.year, today), "Analytics.overview")


@router.get("/yearly", response_model=ActionResponse[YearlySummary])
async def yearly(
    year: Optional[int] = Query(None),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: service.yearly_summary(year or today.year, today), "Analytics.yearly")


@router.get("/monthly", response_model=ActionResponse[List[MonthlySummary]])
async def monthly(
    year: Optional[int] = Query(None),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: service.monthly_breakdown(year or today.year, today), "Analytics.monthly")


@router.get("/quarterly", response_model=ActionResponse[List[QuarterlySummary]])
async def quarterly(
    year: Optional[int] = Query(None),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: service.quarterly_summary(year or today.year, today), "Analytics.quarterly")


@router.get("/weekly", response_model=ActionResponse[List[WeeklySummary]])
async def weekly(
    year: Optional[int] = Query(None),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: service.weekly_breakdown(year or today.year, today), "Analytics.weekly")


@router.get("/trend", response_model=ActionResponse[AccuracyTrend])
async def trend(
    last_n: Optional[int] = Query(None, ge=1, le=100),
    service: AnalyticsService = Depends(_service),
) -> ActionResponse:
    return await run_action(lambda: service.accuracy_trend(last_n), "Analytics.trend")


@router.get("/top-batches", response_model=ActionResponse[List[TopPerformingBatch]])
async def top_batches(
    year: Optional[int] = Query(None),
    limit: int = Query(5, ge=1, le=50),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(
        lambda: service.top_performing_batches(year or today.year, limit), "Analytics.top_batches"
    )


@router.get("/historical", response_model=ActionResponse[Optional[HistoricalComparison]])
async def historical(
    period_type: PeriodType = Query(PeriodType.YEAR),
    year: Optional[int] = Query(None),
    quarter: Optional[int] = Query(None, ge=1, le=4),
    month: Optional[int] = Query(None, ge=1, le=12),
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(
        lambda: service.historical_comparison(
            year or today.year, period_type, today, quarter=quarter, month=month
        ),
        "Analytics.historical",
    )


@router.get("/years", response_model=ActionResponse[List[int]])
async def years(
    service: AnalyticsService = Depends(_service),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: service.available_years(today), "Analytics.years")
