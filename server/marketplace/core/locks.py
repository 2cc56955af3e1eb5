"""Per-key asyncio locks for serializing work on one resource within a process."""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable


class KeyedLock:
    """
    Hands out one ``asyncio.Lock`` per key.

    Locks are held weakly, so keys nobody is waiting on do not accumulate.
    Cross-process exclusion is the database's job (advisory locks); this
    only orders coroutines inside one worker process.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._lock_for(key)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
