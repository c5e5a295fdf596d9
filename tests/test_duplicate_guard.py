"""
Tests for content-hash duplicate detection.

Run with: pytest tests/test_duplicate_guard.py -v
"""

import pytest

from tourledger.core.errors import DuplicateFileError
from tourledger.models.trip_batch import FileFeed
from tourledger.schemas.trip_batch import TripBatchCreate
from tourledger.services.duplicate_guard import DuplicateGuard, DuplicateScope, compute_file_hash


@pytest.fixture
def guard(db):
    return DuplicateGuard(db)


@pytest.fixture
async def other_batch(batch_service):
    return await batch_service.create_batch(TripBatchCreate(name="Week 40"))


def test_compute_file_hash_is_sha256_hex():
    assert compute_file_hash(b"abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


class TestTripFeed:
    """Trip files: a hash on a different batch is reported, the same batch is not."""

    async def test_unknown_hash(self, guard, batch):
        result = await guard.check_duplicate_trip_file(batch.id, "f" * 64)
        assert not result.is_duplicate

    async def test_hash_on_other_batch_reported(self, db, guard, batch, other_batch):
        await guard.record_hash(other_batch, FileFeed.TRIPS, "a" * 64)
        await db.commit()

        result = await guard.check_duplicate_trip_file(batch.id, "a" * 64)

        assert result.is_duplicate
        assert result.matched_batch_id == other_batch.id
        assert result.matched_batch_name == "Week 40"
        assert result.imported_at is not None

    async def test_hash_on_same_batch_not_reported(self, db, guard, batch):
        await guard.record_hash(batch, FileFeed.TRIPS, "a" * 64)
        await db.commit()

        result = await guard.check_duplicate_trip_file(batch.id, "a" * 64)

        assert not result.is_duplicate

    async def test_recording_twice_is_a_no_op(self, db, guard, batch):
        assert await guard.record_hash(batch, FileFeed.TRIPS, "a" * 64)
        assert not await guard.record_hash(batch, FileFeed.TRIPS, "a" * 64)


class TestInvoiceFeed:
    """Invoice files: strict within one batch."""

    async def test_same_batch_is_duplicate(self, db, guard, batch):
        await guard.record_hash(batch, FileFeed.INVOICE, "b" * 64)
        await db.commit()

        result = await guard.check_duplicate(DuplicateScope.THIS_BATCH, batch.id, "b" * 64)

        assert result.is_duplicate
        assert result.matched_batch_name == "Week 41"

    async def test_other_batch_is_not_duplicate(self, db, guard, batch, other_batch):
        await guard.record_hash(other_batch, FileFeed.INVOICE, "b" * 64)
        await db.commit()

        result = await guard.check_duplicate_invoice_file(batch.id, "b" * 64)

        assert not result.is_duplicate

    async def test_second_insert_hits_unique_constraint(self, db, guard, batch):
        """The constraint hit is reported as a duplicate even though the flush rolled back."""
        batch_id = batch.id
        await guard.record_hash(batch, FileFeed.INVOICE, "b" * 64)
        await db.commit()

        with pytest.raises(DuplicateFileError) as exc_info:
            await guard.record_hash(batch, FileFeed.INVOICE, "b" * 64)
        await db.rollback()

        assert exc_info.value.batch_name == "Week 41"
        assert exc_info.value.batch_id == batch_id
        assert exc_info.value.code == "DUPLICATE_FILE"
