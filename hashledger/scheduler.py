"""
scheduler.py - Block scheduler.

Every block_interval_sec the scheduler:
  1. sweeps inactive accounts,
  2. snapshots the hash power of eligible accounts,
  3. stores the next block and allocates its reward.

The insert and allocation of step 3 share one unit of work, so a failed
allocation leaves no block behind and the next tick reuses the height.
The same loop runs staking payouts every stake_payout_interval_sec.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, List, Optional

from hashledger.activity import ActivityTracker
from hashledger.allocator import Participant, RewardAllocator, compute_shares
from hashledger.amounts import ZERO
from hashledger.config import LedgerConfig
from hashledger.staking import StakingService
from hashledger.stats import SupplyMetrics

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("scheduler")


class BlockScheduler:
    """Produces blocks on a fixed interval."""

    def __init__(
        self,
        storage: "StorageManager",
        config: LedgerConfig,
        activity: ActivityTracker,
        allocator: RewardAllocator,
        supply: SupplyMetrics,
        staking: Optional[StakingService] = None,
    ):
        self.storage = storage
        self.config = config
        self.activity = activity
        self.allocator = allocator
        self.supply = supply
        self.staking = staking
        self._task: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()
        self._last_payout = 0.0

    async def start(self):
        """Start the background block loop."""
        self._last_payout = time.time()
        self._task = asyncio.create_task(self._run())
        logger.info("Block scheduler started (interval: %ds)", self.config.block_interval_sec)

    async def stop(self):
        """Stop the background loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Block scheduler stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self):
        """Background loop: mine a block per interval, pay stakes once per payout interval."""
        while True:
            try:
                await asyncio.sleep(self.config.block_interval_sec)
                await self.tick()
                await self._maybe_pay_stakes()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Scheduler loop error")

    async def _maybe_pay_stakes(self):
        if self.staking is None:
            return
        now = time.time()
        if now - self._last_payout < self.config.stake_payout_interval_sec:
            return
        self._last_payout = now
        await self.staking.pay_daily_rewards(now)

    async def snapshot(self) -> List[Participant]:
        """Eligible (account_id, hash_power) pairs.  Call inside a unit of work."""
        active = set(await self.storage.activity.active_ids())
        return [
            (a["account_id"], a["hash_power"])
            for a in await self.storage.accounts.list_with_hash_power()
            if a["account_id"] in active and not a["is_frozen"] and not a["is_banned"]
        ]

    async def tick(self, now: Optional[float] = None) -> Optional[dict]:
        """Mine one block.  Returns the stored block, or None when nothing was mined."""
        async with self._tick_lock:
            now = now if now is not None else time.time()
            try:
                await self.activity.sweep_inactive(now)
                block = await self.storage.atomic(lambda: self._mine(now))
            except Exception:
                logger.exception("Block tick failed; no block produced")
                return None
        if block is not None:
            logger.info(
                "Mined block %d: reward=%s hash_power=%s participants=%d",
                block["height"], block["reward"], block["total_hash_power"], block["participants"],
            )
        return block

    mine_block_tick = tick

    async def _mine(self, now: float) -> Optional[dict]:
        reward = await self.supply.next_reward()
        if reward <= 0:
            logger.info("Max supply reached; no block produced")
            return None
        participants = await self.snapshot()
        total = sum((hp for _, hp in participants), ZERO)
        if total <= 0:
            logger.info("No eligible hash power; no block produced")
            return None

        height = await self.storage.blocks.height() + 1
        credited = len(compute_shares(reward, participants))
        block = await self.storage.blocks.create(height, reward, total, credited, now)
        await self.allocator.allocate_in_tx(block, participants, now)
        await self.supply.advance_schedule(height)
        return block
