"""
projects/locks.py -- Per-key mutual exclusion for project mutations.

Two updates (or an update and a delete) on the same project id must not
interleave: the load -> store asset -> write record -> delete old asset
sequence is only correct when it runs alone. KeyedLocks hands out one
asyncio.Lock per key and forgets it once nobody holds or waits on it, so the
table stays as small as the number of ids currently being mutated.

All bookkeeping happens on the event loop thread between awaits, so the
dict itself needs no lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Hashable
from contextlib import asynccontextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
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
