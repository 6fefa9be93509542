"""Per-technician write serialization."""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional


class TechnicianLocks:
    """One asyncio.Lock per technician, shared by every request of a process.

    A conflict check only protects the invariant if no other write for the
    same technician lands between the check and the commit. Holding the
    technician's lock across check, write and commit closes that window
    within a process; other processes still race.
    """

    def __init__(self) -> None:
        self._locks: dict[uuid.UUID, asyncio.Lock] = defaultdict(asyncio.Lock)

    def lock_for(self, technician_id: uuid.UUID) -> asyncio.Lock:
        return self._locks[technician_id]

    @asynccontextmanager
    async def hold(self, *technician_ids: Optional[uuid.UUID]) -> AsyncIterator[None]:
        """Acquire the locks of all given technicians in a fixed order."""
        ids = sorted({tid for tid in technician_ids if tid is not None}, key=str)
        async with AsyncExitStack() as stack:
            for tid in ids:
                await stack.enter_async_context(self.lock_for(tid))
            yield


technician_locks = TechnicianLocks()
