# finalmessage/locks.py
import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class KeyedLocks:
    """asyncio.Lock per key, dropped once nobody holds or waits for it.

    Locks serialize coroutines on one event loop only; every caller must run
    on the application's loop.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self):
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
