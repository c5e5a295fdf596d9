from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tourledger.core.errors import BatchLockedError, NotFoundError
from tourledger.models.trip import STOP_SLOTS, Trip, TripLoad
from tourledger.schemas.trip import StopSlot, TripLoadResponse, TripResponse, TripUpdate
from tourledger.services.batch_locks import BatchLockRegistry, batch_locks
from tourledger.services.batch_state import ensure_mutable, guard_unlocked
from tourledger.services.revenue import RevenueModel
from tourledger.services.stop_dedup import dedupe_trip_loads
from tourledger.services.trip_batch import TripBatchService

logger = logging.getLogger(__name__)


def load_stops(load: TripLoad) -> List[StopSlot]:
    stops = []
    for slot in range(1, STOP_SLOTS + 1):
        name = getattr(load, f"stop{slot}")
        if name and name.strip():
            stops.append(StopSlot(name=name, planned_arrival=getattr(load, f"stop{slot}_planned_arrival")))
    return stops


class TripService:
    def __init__(
        self,
        db: AsyncSession,
        revenue: Optional[RevenueModel] = None,
        locks: BatchLockRegistry = batch_locks,
    ) -> None:
        self.db = db
        self.revenue = revenue or RevenueModel.from_settings()
        self.locks = locks
        self.batches = TripBatchService(db, revenue=self.revenue, locks=locks)

    def to_response(self, trip: Trip) -> TripResponse:
        """Render a trip with only the loads that contribute new delivery stops."""
        dedup = dedupe_trip_loads(trip.loads)
        visible_loads = [
            TripLoadResponse(
                id=claim.load.id,
                load_id=claim.load.load_id,
                sequence=claim.load.sequence,
                is_bobtail=claim.load.is_bobtail,
                estimated_distance=claim.load.estimated_distance or 0,
                stops=load_stops(claim.load),
                claimed_stops=list(claim.claimed_stops),
            )
            for claim in dedup.visible
        ]

        projected_revenue = self.revenue.trip_revenue(trip.stage)
        variance = None
        if trip.actual_revenue is not None:
            variance = float(trip.actual_revenue - projected_revenue)

        return TripResponse(
            id=trip.id,
            batch_id=trip.batch_id,
            trip_id=trip.trip_id,
            stage=trip.stage,
            scheduled_date=trip.scheduled_date,
            equipment_type=trip.equipment_type,
            operator_type=trip.operator_type,
            projected_loads=trip.projected_loads,
            actual_loads=trip.actual_loads,
            projected_revenue=float(projected_revenue),
            actual_revenue=float(trip.actual_revenue) if trip.actual_revenue is not None else None,
            variance=variance,
            notes=trip.notes,
            total_load_count=len(trip.loads),
            visible_loads=visible_loads,
        )

    async def list_trips(self, batch_id: str) -> List[TripResponse]:
        await self.batches.get_batch(batch_id)
        result = await self.db.execute(
            select(Trip)
            .options(selectinload(Trip.loads))
            .where(Trip.batch_id == batch_id)
            .order_by(Trip.scheduled_date.asc(), Trip.trip_id.asc())
            .execution_options(populate_existing=True)
        )
        return [self.to_response(trip) for trip in result.scalars().all()]

    async def get_trip(self, trip_db_id: str) -> Trip:
        result = await self.db.execute(
            select(Trip)
            .options(selectinload(Trip.loads), selectinload(Trip.batch))
            .where(Trip.id == trip_db_id)
            .execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise NotFoundError(f"Trip {trip_db_id} not found")
        return trip

    async def update_trip(self, trip_db_id: str, payload: TripUpdate) -> TripResponse:
        """Manual edits. Notes stay editable after invoicing; stage and actual loads do not."""
        trip = await self.get_trip(trip_db_id)
        update_data = payload.model_dump(exclude_unset=True)

        async with self.locks.hold(trip.batch_id):
            # Re-read under the lock: an invoice may have landed while waiting
            batch = await self.batches.get_batch(trip.batch_id)
            locked_fields = {"stage", "actual_loads"} & update_data.keys()
            if batch.is_locked and locked_fields:
                raise BatchLockedError(
                    f'Batch "{batch.name}" is invoiced: only notes can be changed',
                    batch_name=batch.name,
                )

            try:
                if locked_fields:
                    await guard_unlocked(self.db, batch)
                if "notes" in update_data:
                    trip.notes = update_data["notes"]
                if "actual_loads" in update_data:
                    trip.actual_loads = update_data["actual_loads"]
                if update_data.get("stage") is not None and update_data["stage"] != trip.stage:
                    trip.stage = update_data["stage"]
                    trip.projected_revenue = self.revenue.trip_revenue(trip.stage)
                    await self.db.flush()
                    await self.batches.refresh_aggregates(batch)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(f"[TripService.update_trip] Updated trip {trip.trip_id} fields={sorted(update_data)}")
        return self.to_response(trip)

    async def delete_trip(self, trip_db_id: str) -> None:
        trip = await self.get_trip(trip_db_id)
        async with self.locks.hold(trip.batch_id):
            batch = await self.batches.get_batch(trip.batch_id)
            ensure_mutable(batch)
            try:
                await guard_unlocked(self.db, batch)
                await self.db.delete(trip)
                await self.db.flush()
                await self.batches.refresh_aggregates(batch)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        logger.info(f"[TripService.delete_trip] Deleted trip {trip.trip_id} from batch {batch.id}")
