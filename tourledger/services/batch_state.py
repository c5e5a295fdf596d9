"""Batch status state machine. The only code allowed to change ``TripBatch.status``."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.core.errors import BatchLockedError, InvalidTransitionError
from tourledger.models.trip_batch import BatchStatus, TripBatch

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.EMPTY: frozenset({BatchStatus.ACTIVE}),
    BatchStatus.ACTIVE: frozenset({BatchStatus.INVOICED}),
    BatchStatus.INVOICED: frozenset(),
}


def can_advance(current: BatchStatus, target: BatchStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def ensure_mutable(batch: TripBatch) -> None:
    """Reject trip mutation on an invoiced batch."""
    if batch.status == BatchStatus.INVOICED:
        raise BatchLockedError(
            f'Batch "{batch.name}" is locked: an invoice has already been applied',
            batch_name=batch.name,
        )


def _check_transition(batch: TripBatch, current: BatchStatus, target: BatchStatus) -> None:
    if target in ALLOWED_TRANSITIONS[current]:
        return
    if current == BatchStatus.INVOICED:
        raise BatchLockedError(f'Batch "{batch.name}" is already invoiced', batch_name=batch.name)
    raise InvalidTransitionError(f"Cannot move batch {batch.id} from {current.value} to {target.value}")


def advance(batch: TripBatch, target: BatchStatus) -> bool:
    """Move ``batch`` to ``target`` in memory. Returns False when it is already there."""
    current = BatchStatus(batch.status)
    if current == target:
        return False
    _check_transition(batch, current, target)
    logger.info(f"[BatchState] {batch.id}: {current.value} -> {target.value}")
    batch.status = target
    return True


async def compare_and_advance(db: AsyncSession, batch: TripBatch, target: BatchStatus) -> None:
    """Advance with ``UPDATE ... WHERE status = <current>``.

    Zero affected rows means another writer moved the batch first.
    """
    current = BatchStatus(batch.status)
    _check_transition(batch, current, target)

    result = await db.execute(
        update(TripBatch)
        .where(TripBatch.id == batch.id, TripBatch.status == current)
        .values(status=target)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise BatchLockedError(
            f'Batch "{batch.name}" was changed by another import, reload and try again',
            batch_name=batch.name,
        )
    advance(batch, target)


async def guard_unlocked(db: AsyncSession, batch: TripBatch) -> None:
    """Touch the batch row with ``UPDATE ... WHERE status != 'INVOICED'``.

    Run inside a trip mutation's transaction. Zero affected rows means an
    invoice was applied after the batch was read.
    """
    result = await db.execute(
        update(TripBatch)
        .where(TripBatch.id == batch.id, TripBatch.status != BatchStatus.INVOICED)
        .values(updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise BatchLockedError(
            f'Batch "{batch.name}" was invoiced by another import, reload and try again',
            batch_name=batch.name,
        )
