import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class KeyedLock:
    """
    Registry of asyncio locks keyed by string.
    Entries are dropped once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
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

    def __len__(self):
        return len(self._locks)


# Process-wide registries
assignment_locks = KeyedLock()
ledger_locks = KeyedLock()
