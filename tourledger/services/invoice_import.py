"""
Applies a carrier invoice to a batch, exactly once.

Order of checks: batch exists, file hash not already applied to this batch,
batch not invoiced, batch holds trips, invoice holds at least one valid
group. Only then is anything written, and it is written in one transaction
ending in the ACTIVE -> INVOICED compare-and-swap.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tourledger.core.errors import (
    BatchLockedError,
    DuplicateFileError,
    EmptyInvoiceError,
    EmptyTripSetError,
)
from tourledger.models.invoice import InvoiceImport, InvoiceItemType, InvoiceLineItem
from tourledger.models.trip import Trip
from tourledger.models.trip_batch import BatchStatus, FileFeed, TripBatch
from tourledger.schemas.invoice import (
    ZERO,
    InvoiceImportRequest,
    InvoiceImportResult,
    RevenueBreakdown,
)
from tourledger.services.batch_locks import BatchLockRegistry, batch_locks
from tourledger.services.batch_state import compare_and_advance
from tourledger.services.duplicate_guard import DuplicateGuard
from tourledger.services.invoice_matcher import MatchResult, match_line_items
from tourledger.services.revenue import to_money, variance_percent
from tourledger.services.trip_batch import TripBatchService

logger = logging.getLogger(__name__)


def build_line_item(invoice_import_id: str, position: int, item, matched: bool) -> InvoiceLineItem:
    return InvoiceLineItem(
        id=str(uuid.uuid4()),
        invoice_import_id=invoice_import_id,
        position=position,
        trip_id=item.trip_id,
        load_id=getattr(item, "load_id", None),
        item_type=InvoiceItemType(item.item_type),
        gross_pay=to_money(item.gross_pay),
        base_rate=to_money(getattr(item, "base_rate", ZERO)),
        fuel_surcharge=to_money(getattr(item, "fuel_surcharge", ZERO)),
        detention=to_money(getattr(item, "detention", ZERO)),
        tonu=to_money(getattr(item, "tonu", ZERO)),
        distance_miles=getattr(item, "distance_miles", 0),
        duration_hours=getattr(item, "duration_hours", 0),
        start_date=item.start_date,
        end_date=item.end_date,
        comments=item.comments,
        matched=matched,
    )


class InvoiceImportService:
    def __init__(self, db: AsyncSession, locks: BatchLockRegistry = batch_locks) -> None:
        self.db = db
        self.locks = locks
        self.guard = DuplicateGuard(db)
        self.batches = TripBatchService(db, locks=locks)

    async def import_invoice(self, batch_id: str, request: InvoiceImportRequest) -> InvoiceImportResult:
        async with self.locks.hold(batch_id):
            return await self._import_invoice(batch_id, request)

    async def _import_invoice(self, batch_id: str, request: InvoiceImportRequest) -> InvoiceImportResult:
        batch = await self.batches.get_batch(batch_id)

        if not request.override_duplicate:
            check = await self.guard.check_duplicate_invoice_file(batch_id, request.file_hash)
            if check.is_duplicate:
                raise DuplicateFileError(
                    f'This invoice file was already imported to batch "{batch.name}"',
                    batch_name=batch.name,
                    batch_id=batch.id,
                )

        if batch.status == BatchStatus.INVOICED:
            raise BatchLockedError(f'Batch "{batch.name}" already has an invoice applied', batch_name=batch.name)
        if batch.status == BatchStatus.EMPTY:
            raise EmptyTripSetError(f'Batch "{batch.name}" has no trips to reconcile')

        trips = await self._batch_trips(batch_id)
        if not trips:
            raise EmptyTripSetError(f'Batch "{batch.name}" has no trips to reconcile')
        match = match_line_items(request.line_items, trips.keys())
        for warning in match.warnings:
            logger.warning(f"[InvoiceImportService.import_invoice] batch={batch_id}: {warning}")
        if not match.groups:
            raise EmptyInvoiceError("Invoice contains no line items with a valid trip id")

        try:
            invoice = await self._store_invoice(batch, request, match)
            self._apply_matched_groups(trips, match)

            projected = to_money(batch.projected_total)
            actual = to_money(match.actual_total)
            variance = actual - projected
            percent = variance_percent(projected, actual)
            now = datetime.utcnow()

            batch.actual_tours = match.actual_tours
            batch.actual_loads = match.actual_loads
            batch.actual_tour_pay = to_money(match.actual_tour_pay)
            batch.actual_accessorials = to_money(match.actual_accessorials)
            batch.actual_adjustments = to_money(match.actual_adjustments)
            batch.actual_total = actual
            batch.variance = variance
            batch.variance_percent = percent
            batch.invoice_file_hash = request.file_hash
            batch.invoice_imported_at = now
            batch.projection_locked_at = now

            await self.guard.record_hash(batch, FileFeed.INVOICE, request.file_hash)
            await compare_and_advance(self.db, batch, BatchStatus.INVOICED)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"[InvoiceImportService.import_invoice] batch={batch_id} items={len(match.valid_items)} "
            f"matched={len(match.matched_groups)} unmatched={len(match.unmatched_groups)} "
            f"actual={actual} projected={projected} variance={variance}"
        )

        return InvoiceImportResult(
            batch_id=batch_id,
            invoice_import_id=invoice.id,
            line_item_count=len(match.valid_items),
            matched_trips=len(match.matched_groups),
            unmatched_trips=len(match.unmatched_groups),
            unmatched_trip_ids=match.unmatched_trip_ids,
            revenue=RevenueBreakdown(
                actual_tours=match.actual_tours,
                actual_loads=match.actual_loads,
                actual_tour_pay=float(match.actual_tour_pay),
                actual_accessorials=float(match.actual_accessorials),
                actual_adjustments=float(match.actual_adjustments),
                actual_total=float(match.actual_total),
            ),
            projected_total=float(projected),
            variance=float(variance),
            variance_percent=percent,
            warnings=match.warnings,
        )

    async def get_invoice(self, batch_id: str) -> Optional[InvoiceImport]:
        await self.batches.get_batch(batch_id)
        result = await self.db.execute(
            select(InvoiceImport)
            .options(selectinload(InvoiceImport.line_items))
            .where(InvoiceImport.batch_id == batch_id)
            .order_by(InvoiceImport.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _batch_trips(self, batch_id: str) -> Dict[str, Trip]:
        result = await self.db.execute(select(Trip).where(Trip.batch_id == batch_id))
        return {trip.trip_id: trip for trip in result.scalars().all()}

    async def _store_invoice(self, batch: TripBatch, request: InvoiceImportRequest, match: MatchResult) -> InvoiceImport:
        matched_ids = match.matched_trip_ids
        invoice = InvoiceImport(
            id=str(uuid.uuid4()),
            batch_id=batch.id,
            invoice_number=request.invoice_number,
            file_hash=request.file_hash,
            line_item_count=len(match.valid_items),
            matched_trip_count=len(match.matched_groups),
            unmatched_trip_count=len(match.unmatched_groups),
        )
        self.db.add(invoice)
        await self.db.flush()

        self.db.add_all(
            build_line_item(invoice.id, position, item, item.trip_id in matched_ids)
            for position, item in enumerate(match.valid_items)
        )
        await self.db.flush()
        return invoice

    def _apply_matched_groups(self, trips: Dict[str, Trip], match: MatchResult) -> None:
        for group in match.matched_groups:
            trip = trips[group.trip_id]
            trip.actual_revenue = to_money(group.total_gross_pay)
            # Manually entered load counts win over the invoice
            if group.reports_work and trip.actual_loads is None:
                trip.actual_loads = group.load_count
