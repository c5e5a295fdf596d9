from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.api.envelope import run_action
from tourledger.core.db import get_db
from tourledger.schemas.common import ActionResponse
from tourledger.schemas.trip import TripResponse, TripUpdate
from tourledger.services.trip import TripService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> TripService:
    return TripService(db)


@router.get("/trip-batches/{batch_id}/trips", response_model=ActionResponse[List[TripResponse]])
async def list_trips(batch_id: str, service: TripService = Depends(_service)) -> ActionResponse:
    return await run_action(lambda: service.list_trips(batch_id), "Trips.list")


@router.patch("/trips/{trip_id}", response_model=ActionResponse[TripResponse])
async def update_trip(
    trip_id: str,
    payload: TripUpdate,
    service: TripService = Depends(_service),
) -> ActionResponse:
    return await run_action(lambda: service.update_trip(trip_id, payload), "Trips.update")


@router.delete("/trips/{trip_id}", response_model=ActionResponse)
async def delete_trip(trip_id: str, service: TripService = Depends(_service)) -> ActionResponse:
    return await run_action(lambda: service.delete_trip(trip_id), "Trips.delete")
