from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tourledger.core.errors import (
    DuplicateFileError,
    EmptyTripSetError,
    NotFoundError,
    RecordValidationError,
)
from tourledger.models.invoice import InvoiceImport
from tourledger.models.trip import Trip, TripLoad, TripStage
from tourledger.models.trip_batch import BatchStatus, FileFeed, TripBatch
from tourledger.schemas.trip import (
    ImportMode,
    LoadCandidate,
    TripCandidate,
    TripImportRequest,
    TripImportResult,
)
from tourledger.schemas.trip_batch import (
    ClearTripsResult,
    DeleteBatchResult,
    TripBatchCreate,
    TripBatchFilters,
    TripBatchUpdate,
)
from tourledger.services.batch_locks import BatchLockRegistry, batch_locks
from tourledger.services.batch_state import advance, ensure_mutable, guard_unlocked
from tourledger.services.duplicate_guard import DuplicateGuard
from tourledger.services.revenue import RevenueModel
from tourledger.services.stop_dedup import dedupe_trip_loads

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": TripBatch.created_at,
    "name": TripBatch.name,
    "trip_count": TripBatch.trip_count,
    "projected_total": TripBatch.projected_total,
}


def validate_candidate(candidate: TripCandidate, seen: set) -> str:
    """Return the stripped trip id, or raise RecordValidationError."""
    trip_id = (candidate.trip_id or "").strip()
    if not trip_id:
        raise RecordValidationError("Trip with a blank trip id skipped")
    if trip_id in seen:
        raise RecordValidationError(f"Trip {trip_id} appears more than once in the file, later rows skipped", trip_id)
    for load in candidate.loads:
        if not (load.load_id or "").strip():
            raise RecordValidationError(f"Trip {trip_id} has a load without a load id, trip skipped", trip_id)
    return trip_id


def build_load(load: LoadCandidate, sequence: int) -> TripLoad:
    row = TripLoad(
        id=str(uuid.uuid4()),
        sequence=sequence,
        load_id=load.load_id.strip(),
        facility_sequence=load.facility_sequence,
        load_execution_status=load.load_execution_status,
        is_bobtail=load.is_bobtail,
        estimated_distance=load.estimated_distance,
    )
    for slot, stop in enumerate(load.stops, start=1):
        setattr(row, f"stop{slot}", stop.name)
        setattr(row, f"stop{slot}_planned_arrival", stop.planned_arrival)
    return row


class TripBatchService:
    def __init__(
        self,
        db: AsyncSession,
        revenue: Optional[RevenueModel] = None,
        locks: BatchLockRegistry = batch_locks,
    ) -> None:
        self.db = db
        self.revenue = revenue or RevenueModel.from_settings()
        self.locks = locks
        self.guard = DuplicateGuard(db)

    # ------------------------------------------------------------------
    # Batch management
    # ------------------------------------------------------------------

    async def create_batch(self, payload: TripBatchCreate) -> TripBatch:
        batch = TripBatch(
            id=str(uuid.uuid4()),
            name=payload.name.strip(),
            description=payload.description,
            status=BatchStatus.EMPTY,
        )
        self.db.add(batch)
        await self.db.commit()
        await self.db.refresh(batch)
        logger.info(f"[TripBatchService.create_batch] Created batch {batch.id} ({batch.name})")
        return batch

    async def get_batch(self, batch_id: str) -> TripBatch:
        result = await self.db.execute(
            select(TripBatch).where(TripBatch.id == batch_id).execution_options(populate_existing=True)
        )
        batch = result.scalar_one_or_none()
        if not batch:
            raise NotFoundError(f"Trip batch {batch_id} not found")
        return batch

    async def list_batches(self, filters: Optional[TripBatchFilters] = None) -> List[TripBatch]:
        filters = filters or TripBatchFilters()
        query = select(TripBatch)

        if filters.status:
            query = query.where(TripBatch.status == filters.status)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.where(or_(TripBatch.name.ilike(pattern), TripBatch.description.ilike(pattern)))

        column = SORT_COLUMNS[filters.sort_by]
        query = query.order_by(column.asc() if filters.sort_order == "asc" else column.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_batch(self, batch_id: str, payload: TripBatchUpdate) -> TripBatch:
        batch = await self.get_batch(batch_id)
        update_data = payload.model_dump(exclude_unset=True)
        if "name" in update_data and update_data["name"] is not None:
            batch.name = update_data["name"].strip()
        if "description" in update_data:
            batch.description = update_data["description"]
        await self.db.commit()
        await self.db.refresh(batch)
        return batch

    async def delete_batch(self, batch_id: str) -> DeleteBatchResult:
        async with self.locks.hold(batch_id):
            batch = await self.get_batch(batch_id)
            trip_total = await self.db.scalar(select(func.count(Trip.id)).where(Trip.batch_id == batch_id))
            invoice_total = await self.db.scalar(
                select(func.count(InvoiceImport.id)).where(InvoiceImport.batch_id == batch_id)
            )
            await self.db.delete(batch)
            await self.db.commit()

        self.locks.discard(batch_id)
        logger.info(
            f"[TripBatchService.delete_batch] Deleted batch {batch_id}: {trip_total} trips, {invoice_total} invoices"
        )
        return DeleteBatchResult(deleted_trips=trip_total or 0, deleted_invoices=invoice_total or 0)

    async def recalculate_batch(self, batch_id: str) -> TripBatch:
        async with self.locks.hold(batch_id):
            batch = await self.get_batch(batch_id)
            await self.refresh_aggregates(batch)
            await self.db.commit()
            await self.db.refresh(batch)
        return batch

    async def clear_batch_trips(self, batch_id: str) -> ClearTripsResult:
        """Delete every trip of a batch that has not been invoiced. The status is left as is."""
        async with self.locks.hold(batch_id):
            batch = await self.get_batch(batch_id)
            ensure_mutable(batch)
            try:
                await guard_unlocked(self.db, batch)
                result = await self.db.execute(delete(Trip).where(Trip.batch_id == batch_id))
                await self.refresh_aggregates(batch)
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

        logger.info(f"[TripBatchService.clear_batch_trips] Removed {result.rowcount} trips from batch {batch_id}")
        return ClearTripsResult(deleted_trips=result.rowcount or 0)

    # ------------------------------------------------------------------
    # Trip import
    # ------------------------------------------------------------------

    async def import_trips(self, batch_id: str, request: TripImportRequest) -> TripImportResult:
        async with self.locks.hold(batch_id):
            return await self._import_trips(batch_id, request)

    async def _import_trips(self, batch_id: str, request: TripImportRequest) -> TripImportResult:
        batch = await self.get_batch(batch_id)
        ensure_mutable(batch)

        candidates, warnings = self._validate_candidates(request.trips)
        if not candidates:
            raise EmptyTripSetError("No valid trips to import")

        if request.file_hash and not request.override_duplicate:
            check = await self.guard.check_duplicate_trip_file(batch_id, request.file_hash)
            if check.is_duplicate:
                raise DuplicateFileError(
                    f'This trip file was already imported to batch "{check.matched_batch_name}"',
                    batch_name=check.matched_batch_name,
                    batch_id=check.matched_batch_id,
                )

        trip_ids = [trip_id for trip_id, _ in candidates]
        existing = await self._existing_trips(batch_id, trip_ids)
        in_other_batches = await self._trip_ids_in_other_batches(batch_id, trip_ids)

        result = TripImportResult(batch_id=batch_id, mode=request.mode, warnings=warnings)
        if in_other_batches:
            result.trip_ids_in_other_batches = in_other_batches
            result.warnings.append(
                f"{len(in_other_batches)} trip(s) already exist in other batches: {', '.join(in_other_batches[:10])}"
            )

        applied: List[Tuple[TripStage, int]] = []
        active_load_count = 0

        try:
            await guard_unlocked(self.db, batch)
            for trip_id, candidate in candidates:
                trip = existing.get(trip_id)
                if trip is not None and request.mode == ImportMode.APPEND:
                    result.skipped += 1
                    result.skipped_trip_ids.append(trip_id)
                    continue

                if trip is None:
                    trip = Trip(id=str(uuid.uuid4()), batch_id=batch_id, trip_id=trip_id, loads=[])
                    self.db.add(trip)
                    result.imported += 1
                else:
                    result.updated += 1
                self._apply_candidate(trip, candidate)

                if candidate.stage == TripStage.CANCELED:
                    result.canceled += 1
                else:
                    active_load_count += len(candidate.loads)
                applied.append((candidate.stage, trip.projected_loads))

            await self.db.flush()
            await self.refresh_aggregates(batch)

            if batch.trip_count > 0:
                advance(batch, BatchStatus.ACTIVE)
            batch.trips_imported_at = datetime.utcnow()
            if request.file_hash:
                batch.trip_file_hash = request.file_hash
                await self.guard.record_hash(batch, FileFeed.TRIPS, request.file_hash)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        totals = self.revenue.project(applied)
        result.projected_tours = totals.tours
        result.projected_loads = totals.loads
        result.active_load_count = active_load_count
        result.projected_tour_pay = float(totals.tour_pay)
        result.projected_accessorials = float(totals.accessorials)
        result.projected_total = float(totals.total)

        logger.info(
            f"[TripBatchService.import_trips] batch={batch_id} mode={request.mode.value} "
            f"imported={result.imported} updated={result.updated} skipped={result.skipped} "
            f"canceled={result.canceled} warnings={len(result.warnings)}"
        )
        return result

    def _validate_candidates(self, trips: Sequence[TripCandidate]) -> Tuple[List[Tuple[str, TripCandidate]], List[str]]:
        seen: set = set()
        valid: List[Tuple[str, TripCandidate]] = []
        warnings: List[str] = []
        for candidate in trips:
            try:
                trip_id = validate_candidate(candidate, seen)
            except RecordValidationError as exc:
                logger.warning(f"[TripBatchService.import_trips] {exc.message}")
                warnings.append(exc.message)
                continue
            seen.add(trip_id)
            valid.append((trip_id, candidate))
        return valid, warnings

    def _apply_candidate(self, trip: Trip, candidate: TripCandidate) -> None:
        """Copy schedule fields and loads onto ``trip``. Actuals and notes are untouched."""
        trip.stage = candidate.stage
        trip.scheduled_date = candidate.scheduled_date
        trip.equipment_type = candidate.equipment_type
        trip.operator_type = candidate.operator_type
        trip.loads = [build_load(load, sequence) for sequence, load in enumerate(candidate.loads)]
        trip.projected_loads = dedupe_trip_loads(candidate.loads).delivery_count
        trip.projected_revenue = self.revenue.trip_revenue(candidate.stage)

    async def _existing_trips(self, batch_id: str, trip_ids: Sequence[str]) -> Dict[str, Trip]:
        result = await self.db.execute(
            select(Trip)
            .options(selectinload(Trip.loads))
            .where(Trip.batch_id == batch_id, Trip.trip_id.in_(trip_ids))
        )
        return {trip.trip_id: trip for trip in result.scalars().all()}

    async def _trip_ids_in_other_batches(self, batch_id: str, trip_ids: Sequence[str]) -> List[str]:
        result = await self.db.execute(
            select(Trip.trip_id)
            .where(Trip.batch_id != batch_id, Trip.trip_id.in_(trip_ids))
            .distinct()
        )
        found = set(result.scalars().all())
        return [trip_id for trip_id in trip_ids if trip_id in found]

    async def refresh_aggregates(self, batch: TripBatch) -> None:
        """Recompute cached counts from the batch's trips. Projections are frozen once invoiced."""
        rows = (
            await self.db.execute(select(Trip.stage, Trip.projected_loads).where(Trip.batch_id == batch.id))
        ).all()
        load_count = await self.db.scalar(
            select(func.count(TripLoad.id)).join(Trip, Trip.id == TripLoad.trip_db_id).where(Trip.batch_id == batch.id)
        )

        batch.trip_count = len(rows)
        batch.canceled_count = sum(1 for stage, _ in rows if stage == TripStage.CANCELED)
        batch.completed_count = sum(1 for stage, _ in rows if stage == TripStage.COMPLETED)
        batch.load_count = load_count or 0

        if batch.is_locked:
            return

        totals = self.revenue.project((TripStage(stage), projected_loads or 0) for stage, projected_loads in rows)
        batch.projected_tours = totals.tours
        batch.projected_loads = totals.loads
        batch.projected_tour_pay = totals.tour_pay
        batch.projected_accessorials = totals.accessorials
        batch.projected_total = totals.total
