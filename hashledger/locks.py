"""
locks.py - Per-account serialization.

AccountLocks hands out one asyncio.Lock per account id.  Multi-account
operations (transfers, referral commissions) acquire their locks in sorted
order so two operations over the same pair can never deadlock.  A lock is
dropped from the registry once nobody holds or waits on it.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional


class AccountLocks:
    """Registry of per-account locks."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._refs: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def locked(self, account_id: str) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *account_ids: Optional[str]) -> AsyncIterator[None]:
        ids = sorted({a for a in account_ids if a})
        for a in ids:
            self._refs[a] = self._refs.get(a, 0) + 1
            self._locks.setdefault(a, asyncio.Lock())
        acquired: List[asyncio.Lock] = []
        try:
            for a in ids:
                lock = self._locks[a]
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for a in ids:
                self._refs[a] -= 1
                if self._refs[a] == 0:
                    del self._refs[a]
                    del self._locks[a]
