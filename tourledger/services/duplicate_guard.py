"""
Content-hash duplicate detection for imported files.

Two scopes:
- ANY_BATCH: the trip feed. A hash already applied to a *different* batch is
  reported so the caller can warn; it can be overridden.
- THIS_BATCH: the invoice feed. The same hash on the same batch is refused.

Recording a hash relies on the ``uq_batch_file_hash`` unique constraint, so
two concurrent writers cannot both record the same (batch, feed, hash).
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.core.errors import DuplicateFileError
from tourledger.models.trip_batch import BatchFileHash, FileFeed, TripBatch
from tourledger.schemas.trip_batch import DuplicateCheckResult

logger = logging.getLogger(__name__)


class DuplicateScope(str, Enum):
    THIS_BATCH = "THIS_BATCH"
    ANY_BATCH = "ANY_BATCH"


SCOPE_FEEDS = {
    DuplicateScope.THIS_BATCH: FileFeed.INVOICE,
    DuplicateScope.ANY_BATCH: FileFeed.TRIPS,
}


def compute_file_hash(content: bytes) -> str:
    """SHA-256 hex digest of raw file bytes."""
    return hashlib.sha256(content).hexdigest()


class DuplicateGuard:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def check_duplicate(
        self,
        scope: DuplicateScope,
        batch_id: str,
        file_hash: str,
        feed: Optional[FileFeed] = None,
    ) -> DuplicateCheckResult:
        feed = feed or SCOPE_FEEDS[scope]
        query = (
            select(BatchFileHash, TripBatch.name)
            .join(TripBatch, TripBatch.id == BatchFileHash.batch_id)
            .where(BatchFileHash.feed == feed, BatchFileHash.file_hash == file_hash)
        )
        if scope == DuplicateScope.THIS_BATCH:
            query = query.where(BatchFileHash.batch_id == batch_id)
        else:
            query = query.where(BatchFileHash.batch_id != batch_id)

        result = await self.db.execute(query.order_by(BatchFileHash.created_at.asc()).limit(1))
        row = result.first()
        if row is None:
            return DuplicateCheckResult(is_duplicate=False)

        record, batch_name = row
        logger.info(
            f"[DuplicateGuard.check_duplicate] {feed.value} hash {file_hash[:12]} already applied to batch {record.batch_id}"
        )
        return DuplicateCheckResult(
            is_duplicate=True,
            matched_batch_id=record.batch_id,
            matched_batch_name=batch_name,
            imported_at=record.created_at,
        )

    async def check_duplicate_trip_file(self, batch_id: str, file_hash: str) -> DuplicateCheckResult:
        return await self.check_duplicate(DuplicateScope.ANY_BATCH, batch_id, file_hash)

    async def check_duplicate_invoice_file(self, batch_id: str, file_hash: str) -> DuplicateCheckResult:
        return await self.check_duplicate(DuplicateScope.THIS_BATCH, batch_id, file_hash)

    async def record_hash(self, batch: TripBatch, feed: FileFeed, file_hash: str) -> bool:
        """Insert the (batch, feed, hash) row inside the caller's transaction.

        Returns False when the trip feed already holds the hash for this batch.
        A unique constraint hit raises DuplicateFileError and leaves the
        session needing a rollback.
        """
        if feed == FileFeed.TRIPS:
            existing = await self.db.scalar(
                select(BatchFileHash.id).where(
                    BatchFileHash.batch_id == batch.id,
                    BatchFileHash.feed == feed,
                    BatchFileHash.file_hash == file_hash,
                )
            )
            if existing:
                return False

        # A failed flush expires the batch, so read these first
        batch_id, batch_name = batch.id, batch.name
        self.db.add(BatchFileHash(id=str(uuid.uuid4()), batch_id=batch_id, feed=feed, file_hash=file_hash))
        try:
            await self.db.flush()
        except IntegrityError:
            raise DuplicateFileError(
                f'This {feed.value} file was already imported to batch "{batch_name}"',
                batch_name=batch_name,
                batch_id=batch_id,
            )
        return True
