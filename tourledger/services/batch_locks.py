import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator


class BatchLockRegistry:
    """Process-local async locks, one per batch id.

    Imports against the same batch run one at a time; different batches do
    not contend. Cross-process safety comes from the conditional status
    updates in ``batch_state`` and the file hash unique constraint.
    """

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def hold(self, batch_id: str) -> AsyncIterator[None]:
        lock = self._locks[batch_id]
        async with lock:
            yield

    def discard(self, batch_id: str) -> None:
        lock = self._locks.get(batch_id)
        if lock is not None and not lock.locked():
            del self._locks[batch_id]


batch_locks = BatchLockRegistry()
