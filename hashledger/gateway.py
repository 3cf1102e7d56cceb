"""
gateway.py - Transaction gateway.

Deposits, withdrawals, transfers and stakes.  Every operation holds the
AccountLocks of the accounts it touches (sorted order) and runs its balance
checks and writes inside one StorageManager.atomic() unit.

Entry status only moves forward:
    deposit:    pending -> approved | rejected
    withdrawal: pending -> completed | rejected
    transfer, stake: created completed
"""

import logging
import sqlite3
import time
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from hashledger.account import adjust_balance, load_account
from hashledger.amounts import CONTEXT, money, positive
from hashledger.config import CURRENCIES, DAY, GBTC, USDT, LedgerConfig
from hashledger.errors import (
    CooldownActive, DuplicateTxHash, EntryNotFound, InsufficientBalance,
    InvalidAmount, InvalidRequest, InvalidStatusTransition, TransferDisabled,
)
from hashledger.locks import AccountLocks
from hashledger.stats import SupplyMetrics

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("gateway")


def _currency(currency: str) -> str:
    currency = (currency or "").upper()
    if currency not in CURRENCIES:
        raise InvalidRequest(f"Unsupported currency: {currency or '(empty)'}")
    return currency


class TransactionGateway:
    """Balance-moving requests against the shared ledger."""

    def __init__(
        self,
        storage: "StorageManager",
        locks: AccountLocks,
        config: LedgerConfig,
        supply: SupplyMetrics,
    ):
        self.storage = storage
        self.locks = locks
        self.config = config
        self.supply = supply

    async def _entry_owner(self, entry_id: int) -> str:
        async with self.storage.reading():
            entry = await self.storage.entries.get(entry_id)
        if entry is None:
            raise EntryNotFound(f"Entry {entry_id} not found")
        return entry["account_id"]

    async def _load_entry(self, entry_id: int, kind: str) -> dict:
        entry = await self.storage.entries.get(entry_id)
        if entry is None or entry["kind"] != kind:
            raise EntryNotFound(f"{kind.capitalize()} {entry_id} not found")
        return entry

    async def _move(self, entry: dict, to_status: str, now: float, **fields) -> dict:
        if entry["status"] != "pending" or not await self.storage.entries.transition(
            entry["id"], "pending", to_status, now, **fields,
        ):
            raise InvalidStatusTransition(entry["id"], entry["status"], to_status)
        return await self.storage.entries.get(entry["id"])

    # -------------------------------------------------------------------
    # Deposits
    # -------------------------------------------------------------------

    async def request_deposit(
        self,
        account_id: str,
        tx_hash: str,
        amount,
        network: str = "",
        currency: str = USDT,
        now: Optional[float] = None,
    ) -> dict:
        """Record a pending deposit.  The balance changes only on approval."""
        currency = _currency(currency)
        amount = positive(amount, currency)
        tx_hash = (tx_hash or "").strip()
        if not tx_hash:
            raise InvalidRequest("Transaction hash is required")
        now = now if now is not None else time.time()

        async def _request():
            await load_account(self.storage, account_id)
            if await self.storage.entries.find_deposit_by_tx_hash(tx_hash) is not None:
                raise DuplicateTxHash(f"Transaction hash {tx_hash} was already submitted")
            try:
                return await self.storage.entries.create(
                    "deposit", account_id, currency, amount, "pending",
                    network=network, tx_hash=tx_hash, now=now,
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateTxHash(f"Transaction hash {tx_hash} was already submitted") from e

        async with self.locks.hold(account_id):
            entry = await self.storage.atomic(_request)
        logger.info("Deposit %d requested: %s %s %s (%s)",
                    entry["id"], account_id, amount, currency, tx_hash)
        return entry

    async def approve_deposit(
        self,
        entry_id: int,
        actual_amount=None,
        note: Optional[str] = None,
        now: Optional[float] = None,
    ) -> dict:
        """Approve a pending deposit and credit it exactly once."""
        now = now if now is not None else time.time()
        owner = await self._entry_owner(entry_id)

        async def _approve():
            entry = await self._load_entry(entry_id, "deposit")
            amount = entry["amount"]
            if actual_amount is not None:
                amount = positive(actual_amount, entry["currency"])
            approved = await self._move(
                entry, "approved", now, note=note,
                amount=amount if amount != entry["amount"] else None,
            )
            await adjust_balance(
                self.storage, entry["account_id"], entry["currency"], amount,
                "deposit", f"deposit:{entry_id}", now,
            )
            return approved

        async with self.locks.hold(owner):
            entry = await self.storage.atomic(_approve)
        logger.info("Deposit %d approved: credited %s %s to %s",
                    entry_id, entry["amount"], entry["currency"], entry["account_id"])
        return entry

    async def reject_deposit(self, entry_id: int, reason: str = "", now: Optional[float] = None) -> dict:
        now = now if now is not None else time.time()
        owner = await self._entry_owner(entry_id)

        async def _reject():
            entry = await self._load_entry(entry_id, "deposit")
            return await self._move(entry, "rejected", now, note=reason or "")

        async with self.locks.hold(owner):
            entry = await self.storage.atomic(_reject)
        logger.info("Deposit %d rejected: %s", entry_id, reason or "-")
        return entry

    async def list_deposits(self, status: str = "pending", limit: Optional[int] = None) -> List[dict]:
        async with self.storage.reading():
            return await self.storage.entries.list_by_status("deposit", status, limit)

    # -------------------------------------------------------------------
    # Withdrawals
    # -------------------------------------------------------------------

    async def request_withdrawal(
        self,
        account_id: str,
        amount,
        address: str,
        currency: str = USDT,
        network: str = "",
        now: Optional[float] = None,
    ) -> dict:
        """Reserve amount + fee and record a pending withdrawal."""
        currency = _currency(currency)
        amount = positive(amount, currency)
        minimum = self.config.min_withdrawal(currency)
        if amount < minimum:
            raise InvalidAmount(f"Minimum withdrawal is {minimum} {currency}")
        address = (address or "").strip()
        if not address:
            raise InvalidRequest("Withdrawal address is required")
        fee = self.config.withdrawal_fee(currency)
        now = now if now is not None else time.time()

        async def _request():
            acct = await load_account(self.storage, account_id)
            if currency == GBTC and await self.supply.transfer_locked():
                raise TransferDisabled("GBTC withdrawals are locked until more supply is mined")

            last = await self.storage.entries.last_completed_at(account_id, "withdrawal")
            if last is not None:
                remaining = last + self.config.withdrawal_cooldown_sec - now
                if remaining > 0:
                    raise CooldownActive(
                        f"Withdrawal cooldown active for {remaining / 3600:.1f} more hour(s)",
                        retry_after=remaining,
                    )

            balance = acct["usdt_balance"] if currency == USDT else acct["gbtc_balance"]
            if amount > balance - fee:
                raise InsufficientBalance(
                    f"Insufficient {currency} balance: have {balance}, need {amount + fee} incl. fee"
                )

            entry = await self.storage.entries.create(
                "withdrawal", account_id, currency, amount, "pending",
                fee=fee, network=network, address=address, now=now,
            )
            ref = f"withdrawal:{entry['id']}"
            await adjust_balance(self.storage, account_id, currency, -amount, "withdraw", ref, now)
            if fee > 0:
                await adjust_balance(self.storage, account_id, currency, -fee, "withdraw_fee", ref, now)
            return entry

        async with self.locks.hold(account_id):
            entry = await self.storage.atomic(_request)
        logger.info("Withdrawal %d requested: %s %s %s (fee %s) to %s",
                    entry["id"], account_id, amount, currency, fee, address)
        return entry

    async def approve_withdrawal(
        self, entry_id: int, tx_hash: Optional[str] = None, now: Optional[float] = None,
    ) -> dict:
        now = now if now is not None else time.time()
        owner = await self._entry_owner(entry_id)

        async def _approve():
            entry = await self._load_entry(entry_id, "withdrawal")
            return await self._move(entry, "completed", now, tx_hash=tx_hash)

        async with self.locks.hold(owner):
            entry = await self.storage.atomic(_approve)
        logger.info("Withdrawal %d completed (%s)", entry_id, tx_hash or "no tx hash")
        return entry

    async def reject_withdrawal(
        self, entry_id: int, reason: Optional[str] = None, now: Optional[float] = None,
    ) -> dict:
        """Reject a pending withdrawal and refund its reservation once."""
        now = now if now is not None else time.time()
        owner = await self._entry_owner(entry_id)

        async def _reject():
            entry = await self._load_entry(entry_id, "withdrawal")
            rejected = await self._move(entry, "rejected", now, note=reason or "")
            await adjust_balance(
                self.storage, entry["account_id"], entry["currency"],
                entry["amount"] + entry["fee"], "withdraw_refund", f"withdrawal:{entry_id}", now,
            )
            return rejected

        async with self.locks.hold(owner):
            entry = await self.storage.atomic(_reject)
        logger.info("Withdrawal %d rejected, refunded %s %s",
                    entry_id, entry["amount"] + entry["fee"], entry["currency"])
        return entry

    async def list_withdrawals(self, status: str = "pending", limit: Optional[int] = None) -> List[dict]:
        async with self.storage.reading():
            return await self.storage.entries.list_by_status("withdrawal", status, limit)

    # -------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------

    async def transfer(
        self,
        from_id: str,
        to_id: str,
        amount,
        memo: Optional[str] = None,
        external: bool = True,
        now: Optional[float] = None,
    ) -> dict:
        """Move GBTC between two accounts in one unit of work."""
        amount = positive(amount, GBTC)
        if from_id == to_id:
            raise InvalidRequest("Cannot transfer to the same account")
        now = now if now is not None else time.time()

        async def _transfer():
            await load_account(self.storage, from_id)
            await load_account(self.storage, to_id)
            if external and await self.supply.transfer_locked():
                raise TransferDisabled("GBTC transfers are locked until more supply is mined")

            entry = await self.storage.entries.create(
                "transfer", from_id, GBTC, amount, "completed",
                counterparty_id=to_id, memo=memo or "", now=now,
            )
            ref = f"transfer:{entry['id']}"
            await adjust_balance(self.storage, from_id, GBTC, -amount, "transfer_out", ref, now)
            await adjust_balance(self.storage, to_id, GBTC, amount, "transfer_in", ref, now)
            return entry

        async with self.locks.hold(from_id, to_id):
            entry = await self.storage.atomic(_transfer)
        logger.info("Transfer %d: %s -> %s %s GBTC", entry["id"], from_id, to_id, amount)
        return entry

    # -------------------------------------------------------------------
    # Stakes
    # -------------------------------------------------------------------

    async def create_stake(
        self,
        account_id: str,
        amount,
        term_days: int = 365,
        currency: str = GBTC,
        now: Optional[float] = None,
    ) -> dict:
        """Lock part of the liquid balance for a fixed term."""
        currency = _currency(currency)
        amount = positive(amount, currency)
        if amount < self.config.min_stake:
            raise InvalidAmount(f"Minimum stake is {self.config.min_stake} {currency}")
        if term_days not in self.config.stake_terms:
            terms = ", ".join(str(t) for t in self.config.stake_terms)
            raise InvalidRequest(f"Stake term must be one of {terms} days")
        apr = self.config.stake_apr
        daily = money(CONTEXT.divide(CONTEXT.multiply(amount, apr), Decimal(100 * 365)), currency)
        now = now if now is not None else time.time()

        async def _stake():
            await load_account(self.storage, account_id)
            entry = await self.storage.entries.create(
                "stake", account_id, currency, amount, "completed", now=now,
            )
            await adjust_balance(
                self.storage, account_id, currency, -amount, "stake_lock", f"stake:{entry['id']}", now,
            )
            return await self.storage.stakes.create(
                entry_id=entry["id"],
                account_id=account_id,
                currency=currency,
                amount=amount,
                apr=apr,
                term_days=term_days,
                daily_reward=daily,
                staked_at=now,
                unlock_at=now + term_days * DAY,
            )

        async with self.locks.hold(account_id):
            stake = await self.storage.atomic(_stake)
        logger.info("Stake %d: %s locked %s %s for %d days (daily %s)",
                    stake["id"], account_id, amount, currency, term_days, daily)
        return stake

    async def list_stakes(self, account_id: str) -> List[dict]:
        async with self.storage.reading():
            return await self.storage.stakes.list_for_account(account_id)
