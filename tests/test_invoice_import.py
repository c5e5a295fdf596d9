"""
Tests for applying carrier invoices to a batch.

Run with: pytest tests/test_invoice_import.py -v
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from builders import adjustment_item, load_item, make_trip, tour_item, trip_request
from tourledger.core.errors import (
    BatchLockedError,
    DuplicateFileError,
    EmptyInvoiceError,
    EmptyTripSetError,
    NotFoundError,
)
from tourledger.models.invoice import InvoiceLineItem
from tourledger.models.trip import Trip
from tourledger.models.trip_batch import BatchStatus
from tourledger.schemas.invoice import InvoiceImportRequest
from tourledger.schemas.trip import TripUpdate
from tourledger.services.invoice_import import InvoiceImportService
from tourledger.services.trip import TripService


@pytest.fixture
def service(db, locks):
    return InvoiceImportService(db, locks=locks)


@pytest.fixture
async def active_batch(batch_service, batch):
    await batch_service.import_trips(batch.id, trip_request(make_trip("T1"), make_trip("T2"), make_trip("T3")))
    return batch


def request(*items, file_hash="inv-hash-1", **kwargs):
    return InvoiceImportRequest(line_items=list(items), file_hash=file_hash, **kwargs)


def full_invoice():
    return [
        tour_item("T1", "452.09", fuel="30.00"),
        load_item("T1", "L1", gross="0"),
        load_item("T1", "L2", gross="0"),
        tour_item("T2", "452.09", fuel="25.50"),
        adjustment_item("T2", "-40.00"),
        tour_item("X9", "452.09"),
    ]


class TestImportInvoice:
    async def test_writes_actuals_and_locks_batch(self, db, service, active_batch):
        result = await service.import_invoice(active_batch.id, request(*full_invoice()))

        assert result.matched_trips == 2
        assert result.unmatched_trips == 1
        assert result.unmatched_trip_ids == ["X9"]
        assert result.line_item_count == 6
        assert result.revenue.actual_tour_pay == pytest.approx(1356.27)
        assert result.revenue.actual_accessorials == pytest.approx(55.50)
        assert result.revenue.actual_adjustments == pytest.approx(-40.00)
        assert result.revenue.actual_total == pytest.approx(1371.77)

        assert active_batch.status == BatchStatus.INVOICED
        assert active_batch.actual_total == Decimal("1371.77")
        assert active_batch.projection_locked_at is not None
        assert active_batch.invoice_file_hash == "inv-hash-1"

    async def test_total_conservation(self, service, active_batch):
        result = await service.import_invoice(active_batch.id, request(*full_invoice()))
        revenue = result.revenue

        assert Decimal(str(revenue.actual_total)) == (
            Decimal(str(revenue.actual_tour_pay))
            + Decimal(str(revenue.actual_accessorials))
            + Decimal(str(revenue.actual_adjustments))
        )

    async def test_variance_against_projection(self, service, active_batch):
        """Three projected trips at 522.09 each vs. the invoiced total."""
        result = await service.import_invoice(active_batch.id, request(*full_invoice()))

        assert result.projected_total == pytest.approx(1566.27)
        assert result.variance == pytest.approx(1371.77 - 1566.27)
        assert result.variance_percent == pytest.approx((1371.77 - 1566.27) / 1566.27 * 100)

    async def test_matched_trips_get_actuals(self, db, service, active_batch):
        await service.import_invoice(active_batch.id, request(*full_invoice()))

        trips = {trip.trip_id: trip for trip in (await db.execute(select(Trip))).scalars()}
        assert trips["T1"].actual_revenue == Decimal("452.09")
        assert trips["T1"].actual_loads == 2
        assert trips["T2"].actual_revenue == Decimal("412.09")
        assert trips["T2"].actual_loads == 0
        assert trips["T3"].actual_revenue is None

    async def test_manual_actual_loads_kept(self, db, locks, service, active_batch):
        t1 = await db.scalar(select(Trip).where(Trip.trip_id == "T1"))
        await TripService(db, locks=locks).update_trip(t1.id, TripUpdate(actual_loads=5))

        await service.import_invoice(active_batch.id, request(*full_invoice()))

        assert t1.actual_loads == 5

    async def test_line_items_stored_with_match_flag(self, db, service, active_batch):
        await service.import_invoice(active_batch.id, request(*full_invoice()))

        items = (await db.execute(select(InvoiceLineItem).order_by(InvoiceLineItem.position))).scalars().all()
        assert len(items) == 6
        assert [item.matched for item in items] == [True, True, True, True, True, False]

    async def test_get_invoice(self, service, active_batch):
        await service.import_invoice(active_batch.id, request(*full_invoice(), invoice_number="INV-2041"))

        stored = await service.get_invoice(active_batch.id)

        assert stored.invoice_number == "INV-2041"
        assert stored.matched_trip_count == 2
        assert len(stored.line_items) == 6


class TestExactlyOnce:
    """A batch takes one invoice; the second attempt changes nothing."""

    async def test_same_file_again_is_duplicate(self, service, active_batch):
        await service.import_invoice(active_batch.id, request(*full_invoice()))

        with pytest.raises(DuplicateFileError):
            await service.import_invoice(active_batch.id, request(*full_invoice()))

    async def test_different_file_is_locked(self, db, service, active_batch):
        first = await service.import_invoice(active_batch.id, request(*full_invoice()))

        with pytest.raises(BatchLockedError):
            await service.import_invoice(
                active_batch.id, request(tour_item("T3", "999.00"), file_hash="inv-hash-2")
            )

        assert active_batch.actual_total == Decimal(str(first.revenue.actual_total))
        assert await db.scalar(select(func.count(InvoiceLineItem.id))) == 6

    async def test_override_does_not_bypass_lock(self, service, active_batch):
        await service.import_invoice(active_batch.id, request(*full_invoice()))

        with pytest.raises(BatchLockedError):
            await service.import_invoice(active_batch.id, request(*full_invoice(), override_duplicate=True))


class TestPreconditions:
    async def test_missing_batch(self, service):
        with pytest.raises(NotFoundError):
            await service.import_invoice("missing", request(*full_invoice()))

    async def test_empty_batch(self, service, batch):
        with pytest.raises(EmptyTripSetError):
            await service.import_invoice(batch.id, request(*full_invoice()))

    async def test_cleared_batch_has_nothing_to_reconcile(self, batch_service, service, active_batch):
        await batch_service.clear_batch_trips(active_batch.id)

        with pytest.raises(EmptyTripSetError):
            await service.import_invoice(active_batch.id, request(*full_invoice()))

        assert active_batch.status == BatchStatus.ACTIVE
        assert active_batch.actual_total is None

    async def test_no_valid_groups_leaves_batch_active(self, db, service, active_batch):
        with pytest.raises(EmptyInvoiceError):
            await service.import_invoice(active_batch.id, request(tour_item(" ", "452.09")))

        assert active_batch.status == BatchStatus.ACTIVE
        assert active_batch.actual_total is None
        assert await db.scalar(select(func.count(InvoiceLineItem.id))) == 0

    async def test_invoiced_batch_rejects_trip_edits(self, db, locks, service, active_batch):
        await service.import_invoice(active_batch.id, request(*full_invoice()))
        t3 = await db.scalar(select(Trip).where(Trip.trip_id == "T3"))
        trips = TripService(db, locks=locks)

        with pytest.raises(BatchLockedError):
            await trips.update_trip(t3.id, TripUpdate(actual_loads=3))
        with pytest.raises(BatchLockedError):
            await trips.delete_trip(t3.id)

        updated = await trips.update_trip(t3.id, TripUpdate(notes="Driver no-show"))
        assert updated.notes == "Driver no-show"
