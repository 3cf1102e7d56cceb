"""Activity tracker - gates block-reward eligibility on recent claims."""

import logging
import time
from typing import TYPE_CHECKING, List, Optional

from hashledger.account import load_account
from hashledger.config import LedgerConfig
from hashledger.errors import AccountNotFound, InvalidRequest
from hashledger.locks import AccountLocks

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("activity")

LAST_SWEEP_KEY = "last_sweep_at"


class ActivityTracker:
    """Active/inactive state per account.

    An account becomes active on its first hash-power purchase, stays active
    while it claims within the inactivity window, and is reactivated by any
    successful claim or an explicit resume().
    """

    def __init__(self, storage: "StorageManager", locks: AccountLocks, config: LedgerConfig):
        self.storage = storage
        self.locks = locks
        self.config = config

    async def is_eligible(self, account_id: str) -> bool:
        async with self.storage.reading():
            record = await self.storage.activity.get(account_id)
        return bool(record and record["is_active"])

    async def record_claim(self, account_id: str, now: float):
        """Mark a successful claim.  Runs inside the claimer's unit of work."""
        await self.storage.activity.record_claim(account_id, now)

    async def sweep_inactive(self, now: Optional[float] = None) -> dict:
        """Deactivate idle accounts and count lapsed rewards since the last sweep."""
        now = now if now is not None else time.time()
        cutoff = now - self.config.inactivity_window_sec

        async def _sweep():
            raw = await self.storage.settings.get(LAST_SWEEP_KEY)
            since = float(raw) if raw is not None else 0.0
            if now <= since:
                return [], []
            deactivated = await self.storage.activity.deactivate_idle(cutoff, now)
            lapsed = await self.storage.rewards.accounts_with_expired_between(since, now)
            missed = [a for a in lapsed if await self.storage.activity.get(a) is not None]
            await self.storage.activity.add_missed(missed, now)
            await self.storage.settings.set(LAST_SWEEP_KEY, repr(now))
            return deactivated, missed

        deactivated, missed = await self.storage.atomic(_sweep)
        if deactivated:
            logger.info("Deactivated %d idle account(s): %s", len(deactivated), ", ".join(deactivated))
        if missed:
            logger.debug("Missed claims recorded for %d account(s)", len(missed))
        return {"deactivated": deactivated, "missed": missed}

    async def resume(self, account_id: str, now: Optional[float] = None) -> dict:
        """Reactivate mining for an account that owns hash power."""
        now = now if now is not None else time.time()

        async def _resume():
            acct = await load_account(self.storage, account_id)
            if acct["hash_power"] <= 0:
                raise InvalidRequest("Purchase hash power before starting to mine")
            await self.storage.activity.activate(account_id, now)
            return await self.storage.activity.get(account_id)

        async with self.locks.hold(account_id):
            record = await self.storage.atomic(_resume)
        logger.info("Account %s resumed mining", account_id)
        return record

    async def get_record(self, account_id: str) -> dict:
        async with self.storage.reading():
            record = await self.storage.activity.get(account_id)
        if record is None:
            raise AccountNotFound(f"No activity record for '{account_id}'")
        return record

    async def list_records(self) -> List[dict]:
        async with self.storage.reading():
            return await self.storage.activity.list_all()
