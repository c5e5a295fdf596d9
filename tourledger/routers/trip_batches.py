from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.api.envelope import run_action
from tourledger.core.db import get_db
from tourledger.models.trip_batch import BatchStatus
from tourledger.schemas.analytics import BatchVarianceReport
from tourledger.schemas.common import ActionResponse
from tourledger.schemas.trip import TripImportRequest, TripImportResult
from tourledger.schemas.trip_batch import (
    ClearTripsResult,
    DeleteBatchResult,
    DuplicateCheckRequest,
    DuplicateCheckResult,
    TripBatchCreate,
    TripBatchDetail,
    TripBatchFilters,
    TripBatchSummary,
    TripBatchUpdate,
)
from tourledger.services.analytics import AnalyticsService
from tourledger.services.duplicate_guard import DuplicateGuard
from tourledger.services.trip_batch import TripBatchService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> TripBatchService:
    return TripBatchService(db)


async def _guard(db: AsyncSession = Depends(get_db)) -> DuplicateGuard:
    return DuplicateGuard(db)


async def _analytics(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)


def _today() -> date:
    return date.today()


@router.post("", response_model=ActionResponse[TripBatchDetail])
async def create_batch(
    payload: TripBatchCreate,
    service: TripBatchService = Depends(_service),
) -> ActionResponse:
    async def action():
        return TripBatchDetail.model_validate(await service.create_batch(payload))

    return await run_action(action, "TripBatches.create")


@router.get("", response_model=ActionResponse[List[TripBatchSummary]])
async def list_batches(
    status: Optional[BatchStatus] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: Literal["created_at", "name", "trip_count", "projected_total"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    service: TripBatchService = Depends(_service),
) -> ActionResponse:
    filters = TripBatchFilters(status=status, search=search, sort_by=sort_by, sort_order=sort_order)

    async def action():
        return [TripBatchSummary.model_validate(batch) for batch in await service.list_batches(filters)]

    return await run_action(action, "TripBatches.list")


@router.get("/{batch_id}", response_model=ActionResponse[TripBatchDetail])
async def get_batch(batch_id: str, service: TripBatchService = Depends(_service)) -> ActionResponse:
    async def action():
        return TripBatchDetail.model_validate(await service.get_batch(batch_id))

    return await run_action(action, "TripBatches.get")


@router.patch("/{batch_id}", response_model=ActionResponse[TripBatchDetail])
async def update_batch(
    batch_id: str,
    payload: TripBatchUpdate,
    service: TripBatchService = Depends(_service),
) -> ActionResponse:
    async def action():
        return TripBatchDetail.model_validate(await service.update_batch(batch_id, payload))

    return await run_action(action, "TripBatches.update")


@router.delete("/{batch_id}", response_model=ActionResponse[DeleteBatchResult])
async def delete_batch(batch_id: str, service: TripBatchService = Depends(_service)) -> ActionResponse:
    return await run_action(lambda: service.delete_batch(batch_id), "TripBatches.delete")


@router.post("/{batch_id}/recalculate", response_model=ActionResponse[TripBatchDetail])
async def recalculate_batch(batch_id: str, service: TripBatchService = Depends(_service)) -> ActionResponse:
    async def action():
        return TripBatchDetail.model_validate(await service.recalculate_batch(batch_id))

    return await run_action(action, "TripBatches.recalculate")


@router.post("/{batch_id}/clear-trips", response_model=ActionResponse[ClearTripsResult])
async def clear_batch_trips(batch_id: str, service: TripBatchService = Depends(_service)) -> ActionResponse:
    return await run_action(lambda: service.clear_batch_trips(batch_id), "TripBatches.clear_trips")


@router.post("/{batch_id}/trips/import", response_model=ActionResponse[TripImportResult])
async def import_trips(
    batch_id: str,
    payload: TripImportRequest,
    service: TripBatchService = Depends(_service),
) -> ActionResponse:
    return await run_action(lambda: service.import_trips(batch_id, payload), "TripBatches.import_trips")


@router.post("/{batch_id}/trips/check-duplicate", response_model=ActionResponse[DuplicateCheckResult])
async def check_duplicate_trip_file(
    batch_id: str,
    payload: DuplicateCheckRequest,
    guard: DuplicateGuard = Depends(_guard),
) -> ActionResponse:
    return await run_action(
        lambda: guard.check_duplicate_trip_file(batch_id, payload.file_hash), "TripBatches.check_duplicate"
    )


@router.get("/{batch_id}/variance", response_model=ActionResponse[BatchVarianceReport])
async def batch_variance(
    batch_id: str,
    analytics: AnalyticsService = Depends(_analytics),
    today: date = Depends(_today),
) -> ActionResponse:
    return await run_action(lambda: analytics.batch_variance(batch_id, today), "TripBatches.variance")
