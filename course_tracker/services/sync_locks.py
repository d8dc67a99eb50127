"""Per-(user, course) mutual exclusion for a single process.

Syncing is read-modify-write on the aggregate, so two syncs of the same
pair must not interleave.  Different pairs never contend.  A lock entry
lives only while someone holds or waits for it, so the registry does not
grow with the number of learners.

Across processes the store's optimistic version check takes over; see
CourseProgressRepo.update().
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

SyncKey = tuple[str, str]


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[SyncKey, asyncio.Lock] = {}
        self._users: dict[SyncKey, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str, course_id: str) -> AsyncIterator[None]:
        key = (user_id, course_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


sync_locks = KeyedLocks()
