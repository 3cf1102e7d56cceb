"""
stats.py - Supply metrics, block reward schedule and the transfer lock.

The current block reward is kept in system_settings.block_reward.  It halves
every halving_interval blocks and is clipped so total issuance lands exactly
on max_supply.  External GBTC movement stays locked until
transfer_unlock_percent of max supply has been mined, unless an admin forces
the lock with the transfer_lock setting (auto / on / off).
"""

import logging
import time
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from hashledger.amounts import CONTEXT, ZERO, dec, enc, money
from hashledger.config import GBTC, GBTC_UNIT, USDT, LedgerConfig
from hashledger.errors import InvalidRequest

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("stats")

BLOCK_REWARD_KEY = "block_reward"
TRANSFER_LOCK_KEY = "transfer_lock"
TRANSFER_LOCK_MODES = ("auto", "on", "off")


class SupplyMetrics:
    """Read-side view of issuance.  Methods without a lock run inside a unit of work."""

    def __init__(self, storage: "StorageManager", config: LedgerConfig):
        self.storage = storage
        self.config = config

    # -------------------------------------------------------------------
    # Reward schedule (call inside a unit of work)
    # -------------------------------------------------------------------

    async def current_reward(self) -> Decimal:
        raw = await self.storage.settings.get(BLOCK_REWARD_KEY)
        if raw is None:
            return self.config.initial_block_reward
        return dec(raw)

    async def next_reward(self) -> Decimal:
        """Reward for the next block after applying the supply cap."""
        reward = await self.current_reward()
        remaining = self.config.max_supply - await self.storage.blocks.total_mined()
        if remaining <= 0 or reward <= 0:
            return ZERO
        return min(reward, remaining)

    async def advance_schedule(self, height: int):
        """Persist the reward that applies after block `height` was stored."""
        reward = await self.current_reward()
        mined = await self.storage.blocks.total_mined()
        if mined >= self.config.max_supply:
            reward = ZERO
        if self.config.halving_interval and height % self.config.halving_interval == 0:
            reward = money(CONTEXT.divide(reward, Decimal(2)), GBTC)
            if reward < GBTC_UNIT:
                reward = ZERO
            logger.info("Halving at block %d: reward is now %s GBTC", height, reward)
        await self.storage.settings.set(BLOCK_REWARD_KEY, enc(reward))

    async def percent_mined(self) -> Decimal:
        mined = await self.storage.blocks.total_mined()
        if self.config.max_supply <= 0:
            return Decimal(100)
        return CONTEXT.divide(CONTEXT.multiply(mined, Decimal(100)), self.config.max_supply)

    async def lock_mode(self) -> str:
        return await self.storage.settings.get(TRANSFER_LOCK_KEY, "auto")

    async def transfer_locked(self) -> bool:
        mode = await self.lock_mode()
        if mode == "on":
            return True
        if mode == "off":
            return False
        return await self.percent_mined() < self.config.transfer_unlock_percent

    # -------------------------------------------------------------------
    # Public views
    # -------------------------------------------------------------------

    async def transfer_lock_active(self) -> bool:
        async with self.storage.reading():
            return await self.transfer_locked()

    async def set_transfer_lock(self, mode: str) -> str:
        if mode not in TRANSFER_LOCK_MODES:
            raise InvalidRequest(f"Transfer lock must be one of {', '.join(TRANSFER_LOCK_MODES)}")

        async def _set():
            await self.storage.settings.set(TRANSFER_LOCK_KEY, mode)

        await self.storage.atomic(_set)
        logger.warning("Transfer lock set to %s", mode)
        return mode

    async def get_global_stats(self, now: Optional[float] = None) -> dict:
        now = now if now is not None else time.time()
        async with self.storage.reading():
            accounts = await self.storage.accounts.list_all()
            active_ids = set(await self.storage.activity.active_ids())
            height = await self.storage.blocks.height()
            latest = await self.storage.blocks.latest()
            mined = await self.storage.blocks.total_mined()
            reward = await self.current_reward()
            percent = await self.percent_mined()
            locked = await self.transfer_locked()
            liquid = await self.storage.accounts.sum_balances(GBTC)
            staked = await self.storage.stakes.staked_total(currency=GBTC)
            unclaimed = sum((await self.storage.rewards.live_totals(now)).values(), ZERO)
            usdt_total = await self.storage.accounts.sum_balances(USDT)

        total_hash_power = sum((a["hash_power"] for a in accounts), ZERO)
        active_hash_power = sum(
            (a["hash_power"] for a in accounts
             if a["account_id"] in active_ids and not a["is_frozen"] and not a["is_banned"]),
            ZERO,
        )
        interval = self.config.halving_interval
        next_halving = (height // interval + 1) * interval if interval else None
        return {
            "total_hash_power": total_hash_power,
            "active_hash_power": active_hash_power,
            "total_accounts": len(accounts),
            "active_miners": len(active_ids),
            "block_height": height,
            "block_reward": reward,
            "last_block_at": latest["created_at"] if latest else None,
            "total_mined": mined,
            "circulating_supply": liquid + staked,
            "unclaimed_supply": unclaimed,
            "max_supply": self.config.max_supply,
            "percent_mined": money(percent, USDT),
            "next_halving_height": next_halving,
            "blocks_until_halving": (next_halving - height) if next_halving else None,
            "transfer_locked": locked,
            "total_usdt_balance": usdt_total,
            "block_interval_sec": self.config.block_interval_sec,
        }

    async def get_admin_stats(self) -> dict:
        """Operator totals: accounts, miners, blocks and money moved through the gateway."""
        async with self.storage.reading():
            total_accounts = await self.storage.accounts.count()
            active_miners = await self.storage.activity.count_active()
            blocks = await self.storage.blocks.count()
            miners = await self.storage.accounts.list_with_hash_power()
            deposits = {
                c: await self.storage.entries.sum_by_status("deposit", "approved", c)
                for c in (USDT, GBTC)
            }
            withdrawals = {
                c: await self.storage.entries.sum_by_status("withdrawal", "completed", c)
                for c in (USDT, GBTC)
            }
            pending = await self.storage.entries.sum_by_status("withdrawal", "pending", USDT)
        return {
            "total_accounts": total_accounts,
            "active_miners": active_miners,
            "blocks_mined": blocks,
            "total_hash_power": sum((a["hash_power"] for a in miners), ZERO),
            "total_deposits": deposits,
            "total_withdrawals": withdrawals,
            "pending_usdt_withdrawals": pending,
        }
