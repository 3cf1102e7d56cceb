"""Staking payouts - daily stake rewards and release of matured stakes."""

import logging
import time
from typing import TYPE_CHECKING, Optional, Tuple

from hashledger.account import adjust_balance
from hashledger.config import DAY
from hashledger.errors import LedgerError
from hashledger.locks import AccountLocks

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("staking")


class StakingService:
    """Pays active stakes for each whole day staked and releases them at unlock time."""

    def __init__(self, storage: "StorageManager", locks: AccountLocks):
        self.storage = storage
        self.locks = locks

    async def pay_daily_rewards(self, now: Optional[float] = None) -> dict:
        now = now if now is not None else time.time()
        async with self.storage.reading():
            stakes = await self.storage.stakes.list_active()

        paid = released = failed = 0
        for stake in stakes:
            try:
                did_pay, did_release = await self._process(stake["id"], stake["account_id"], now)
            except LedgerError as e:
                failed += 1
                logger.error("Stake %d payout failed: %s", stake["id"], e)
                continue
            paid += did_pay
            released += did_release

        if paid or released or failed:
            logger.info("Staking run: %d paid, %d released, %d failed", paid, released, failed)
        return {"paid": paid, "released": released, "failed": failed}

    async def _process(self, stake_id: int, account_id: str, now: float) -> Tuple[bool, bool]:
        """Pay every whole day owed up to min(now, unlock_at), then release if matured."""

        async def _work():
            stake = await self.storage.stakes.get(stake_id)
            if stake is None or stake["status"] != "active":
                return False, False
            ref = f"stake:{stake['entry_id']}"
            last = stake["last_reward_at"] or stake["staked_at"]
            days = int((min(now, stake["unlock_at"]) - last) // DAY)
            did_pay = days > 0 and stake["daily_reward"] > 0
            if did_pay:
                owed = stake["daily_reward"] * days
                await adjust_balance(
                    self.storage, account_id, stake["currency"], owed, "stake_reward", ref, now,
                )
                await self.storage.stakes.record_payout(
                    stake_id, stake["total_rewards_paid"] + owed, last + days * DAY,
                )
            if stake["unlock_at"] > now:
                return did_pay, False
            if not await self.storage.stakes.complete(stake_id):
                return did_pay, False
            await adjust_balance(
                self.storage, account_id, stake["currency"], stake["amount"],
                "stake_release", ref, now,
            )
            return did_pay, True

        async with self.locks.hold(account_id):
            return await self.storage.atomic(_work)
