"""
ledger.py - Ledger facade.

Wires storage, locks and every ledger service together and exposes the
operations callers (HTTP routers, CLI, tests) use.

Usage:
    ledger = Ledger(LedgerConfig(), db_path=":memory:")
    await ledger.initialize()
    await ledger.accounts.create_account("alice")
    ...
    await ledger.close()
"""

import logging
from typing import List, Optional

from hashledger.account import AccountService
from hashledger.activity import ActivityTracker
from hashledger.allocator import RewardAllocator
from hashledger.claims import ClaimProcessor, ClaimResult
from hashledger.config import GBTC, USDT, LedgerConfig
from hashledger.gateway import TransactionGateway
from hashledger.locks import AccountLocks
from hashledger.scheduler import BlockScheduler
from hashledger.staking import StakingService
from hashledger.stats import SupplyMetrics
from hashledger.storage import StorageManager

logger = logging.getLogger("ledger")


class Ledger:
    """All ledger services over one store."""

    def __init__(self, config: Optional[LedgerConfig] = None, db_path: str = "ledger.db"):
        self.config = config or LedgerConfig()
        self.storage = StorageManager(
            db_path,
            tx_timeout_sec=self.config.tx_timeout_sec,
            retries=self.config.store_retries,
            retry_backoff_sec=self.config.store_retry_backoff_sec,
        )
        self.locks = AccountLocks()
        self.supply = SupplyMetrics(self.storage, self.config)
        self.accounts = AccountService(self.storage, self.locks, self.config)
        self.activity = ActivityTracker(self.storage, self.locks, self.config)
        self.allocator = RewardAllocator(self.storage, self.config)
        self.claims = ClaimProcessor(self.storage, self.locks, self.activity)
        self.gateway = TransactionGateway(self.storage, self.locks, self.config, self.supply)
        self.staking = StakingService(self.storage, self.locks)
        self.scheduler = BlockScheduler(
            self.storage, self.config, self.activity, self.allocator, self.supply, self.staking,
        )

    async def initialize(self):
        await self.storage.initialize()
        logger.info("Ledger ready (db=%s)", self.storage.db_path)

    async def close(self):
        await self.scheduler.stop()
        await self.storage.close()

    # -------------------------------------------------------------------
    # Balances and rewards
    # -------------------------------------------------------------------

    async def get_balance(self, account_id: str, now: Optional[float] = None) -> dict:
        return await self.accounts.get_balance(account_id, now)

    async def get_claimable(self, account_id: str, now: Optional[float] = None) -> List[dict]:
        return await self.claims.get_claimable(account_id, now)

    async def claim(self, account_id: str, now: Optional[float] = None) -> ClaimResult:
        return await self.claims.claim(account_id, now)

    # -------------------------------------------------------------------
    # Gateway
    # -------------------------------------------------------------------

    async def request_deposit(
        self, account_id: str, tx_hash: str, amount, network: str = "", currency: str = USDT,
    ) -> dict:
        return await self.gateway.request_deposit(account_id, tx_hash, amount, network, currency)

    async def approve_deposit(self, entry_id: int, actual_amount=None, note: Optional[str] = None) -> dict:
        return await self.gateway.approve_deposit(entry_id, actual_amount, note)

    async def reject_deposit(self, entry_id: int, reason: str = "") -> dict:
        return await self.gateway.reject_deposit(entry_id, reason)

    async def request_withdrawal(
        self, account_id: str, amount, address: str, currency: str = USDT, network: str = "",
    ) -> dict:
        return await self.gateway.request_withdrawal(account_id, amount, address, currency, network)

    async def transfer(self, from_id: str, to_id: str, amount, memo: Optional[str] = None) -> dict:
        return await self.gateway.transfer(from_id, to_id, amount, memo)

    async def create_stake(self, account_id: str, amount, term_days: int = 365, currency: str = GBTC) -> dict:
        return await self.gateway.create_stake(account_id, amount, term_days, currency)

    # -------------------------------------------------------------------
    # Mining
    # -------------------------------------------------------------------

    async def mine_block_tick(self, now: Optional[float] = None) -> Optional[dict]:
        return await self.scheduler.tick(now)

    async def get_global_stats(self) -> dict:
        return await self.supply.get_global_stats()
