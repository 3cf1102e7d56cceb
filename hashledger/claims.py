"""
claims.py - Claim processor.

Turns live unclaimed rewards into GBTC balance.  A reward is live while
claimed = 0 and expires_at > now; selection, marking and crediting share a
single unit of work, and each row is marked with an UPDATE that re-checks
the live predicate, so a reward is credited at most once.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from hashledger.account import adjust_balance, load_account
from hashledger.activity import ActivityTracker
from hashledger.amounts import ZERO
from hashledger.config import GBTC
from hashledger.errors import AccountNotFound, NoClaimableRewards
from hashledger.locks import AccountLocks

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("claims")


@dataclass
class ClaimResult:
    count: int
    amount: Decimal
    balance: Decimal

    def to_dict(self) -> dict:
        return {"count": self.count, "amount": self.amount, "balance": self.balance}


class ClaimProcessor:
    """Claims live rewards under the account lock."""

    def __init__(self, storage: "StorageManager", locks: AccountLocks, activity: ActivityTracker):
        self.storage = storage
        self.locks = locks
        self.activity = activity

    async def get_claimable(self, account_id: str, now: Optional[float] = None) -> List[dict]:
        """Live rewards for an account, newest block first."""
        now = now if now is not None else time.time()
        async with self.storage.reading():
            if await self.storage.accounts.get(account_id) is None:
                raise AccountNotFound(f"Account '{account_id}' not found")
            return await self.storage.rewards.list_live(account_id, now)

    async def claim(self, account_id: str, now: Optional[float] = None) -> ClaimResult:
        """Claim every live reward of an account."""
        now = now if now is not None else time.time()

        async def _claim():
            await load_account(self.storage, account_id)
            live = await self.storage.rewards.list_live(account_id, now)
            return await self._settle(account_id, live, now)

        async with self.locks.hold(account_id):
            result = await self.storage.atomic(_claim)
        logger.info(
            "Account %s claimed %d reward(s): %s GBTC (balance=%s)",
            account_id, result.count, result.amount, result.balance,
        )
        return result

    async def claim_one(self, account_id: str, reward_id: int, now: Optional[float] = None) -> ClaimResult:
        """Claim a single reward row owned by the account."""
        now = now if now is not None else time.time()

        async def _claim():
            await load_account(self.storage, account_id)
            row = await self.storage.rewards.get(reward_id)
            if row is None or row["account_id"] != account_id:
                raise NoClaimableRewards(f"Reward {reward_id} not found")
            return await self._settle(account_id, [row], now)

        async with self.locks.hold(account_id):
            result = await self.storage.atomic(_claim)
        logger.info("Account %s claimed reward %d: %s GBTC", account_id, reward_id, result.amount)
        return result

    async def _settle(self, account_id: str, rows: List[dict], now: float) -> ClaimResult:
        claimed = []
        for row in rows:
            if await self.storage.rewards.mark_claimed(row["id"], now):
                claimed.append(row)
        if not claimed:
            raise NoClaimableRewards("No claimable rewards")

        amount = sum((r["reward"] for r in claimed), ZERO)
        ref = "claim:" + ",".join(str(r["block_height"]) for r in claimed)
        balance = await adjust_balance(self.storage, account_id, GBTC, amount, "reward_claim", ref, now)
        await self.activity.record_claim(account_id, now)
        return ClaimResult(count=len(claimed), amount=amount, balance=balance)
