import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

try:
    import aiosqlite
except ImportError:
    raise ImportError(
        "aiosqlite is required for the storage layer. "
        "Install with: pip install aiosqlite"
    )

from hashledger.errors import TemporarilyUnavailable

from ._migrate import run_migrations
from .accounts import AccountRepo
from .activity import ActivityRepo
from .blocks import BlockRepo
from .entries import LedgerEntryRepo
from .rewards import RewardRepo
from .settings import SettingsRepo
from .stakes import StakeRepo
from .transactions import TransactionRepo

logger = logging.getLogger("storage")

T = TypeVar("T")

_RETRYABLE = ("locked", "busy")


class StorageManager:
    """Top-level manager: opens the database, runs migrations, exposes repos.

    The connection runs in autocommit mode; the only place a transaction is
    opened or committed is atomic().  Repositories just execute statements,
    so a unit of work composes any number of repo calls into one commit.
    """

    def __init__(
        self,
        db_path: str = "ledger.db",
        tx_timeout_sec: float = 10.0,
        retries: int = 3,
        retry_backoff_sec: float = 0.05,
    ):
        self.db_path = db_path
        self.tx_timeout_sec = tx_timeout_sec
        self.retries = retries
        self.retry_backoff_sec = retry_backoff_sec
        self._db: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        self.accounts: Optional[AccountRepo] = None
        self.blocks: Optional[BlockRepo] = None
        self.rewards: Optional[RewardRepo] = None
        self.activity: Optional[ActivityRepo] = None
        self.entries: Optional[LedgerEntryRepo] = None
        self.stakes: Optional[StakeRepo] = None
        self.transactions: Optional[TransactionRepo] = None
        self.settings: Optional[SettingsRepo] = None

    async def initialize(self):
        self._db = await aiosqlite.connect(self.db_path, isolation_level=None)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")
        await self._db.execute("PRAGMA busy_timeout=2000")
        await run_migrations(self._db, logger)

        self.accounts = AccountRepo(self._db)
        self.blocks = BlockRepo(self._db)
        self.rewards = RewardRepo(self._db)
        self.activity = ActivityRepo(self._db)
        self.entries = LedgerEntryRepo(self._db)
        self.stakes = StakeRepo(self._db)
        self.transactions = TransactionRepo(self._db)
        self.settings = SettingsRepo(self._db)

        logger.info("Storage initialized: %s", self.db_path)

    async def close(self):
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Storage closed")

    @property
    def connected(self) -> bool:
        return self._db is not None

    # -------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------

    async def atomic(
        self,
        work: Callable[[], Awaitable[T]],
        timeout: Optional[float] = None,
    ) -> T:
        """Run work() inside one IMMEDIATE transaction.

        Commits on success; any exception rolls back and propagates.
        Lock/busy errors are retried from scratch, and a unit that outlives
        its timeout is aborted.  Both surface as TemporarilyUnavailable.
        """
        if self._db is None:
            raise TemporarilyUnavailable("Ledger store is not connected")
        limit = timeout if timeout is not None else self.tx_timeout_sec
        attempt = 0
        while True:
            attempt += 1
            async with self._lock:
                try:
                    await self._db.execute("BEGIN IMMEDIATE")
                    result = await asyncio.wait_for(work(), limit)
                    await self._db.execute("COMMIT")
                    return result
                except asyncio.TimeoutError:
                    await self._rollback()
                    logger.error("Transaction aborted after %.1fs", limit)
                    raise TemporarilyUnavailable("Ledger transaction timed out")
                except sqlite3.OperationalError as e:
                    await self._rollback()
                    if not any(word in str(e).lower() for word in _RETRYABLE):
                        raise
                    if attempt > self.retries:
                        logger.error("Transaction failed after %d attempts: %s", attempt, e)
                        raise TemporarilyUnavailable("Ledger store is busy, try again")
                    logger.warning("Transaction conflict (attempt %d): %s", attempt, e)
                except BaseException:
                    await self._rollback()
                    raise
            await asyncio.sleep(self.retry_backoff_sec * attempt)

    @asynccontextmanager
    async def reading(self) -> AsyncIterator["StorageManager"]:
        """Serialize a group of reads against in-flight units of work."""
        if self._db is None:
            raise TemporarilyUnavailable("Ledger store is not connected")
        async with self._lock:
            yield self

    async def _rollback(self):
        try:
            if self._db is not None and self._db.in_transaction:
                await self._db.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("Rollback failed")
