"""
account.py - Account service.

Account creation, hash-power purchases (with referral commission), admin
freeze/ban flags and balance views.  Every mutation runs as one
StorageManager.atomic() unit under the AccountLocks of the accounts it
touches.

Module-level helpers (load_account, adjust_balance) are shared by the other
ledger services so balance checks and the audit journal stay in one place.
"""

import logging
import secrets
import string
import time
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from hashledger.amounts import ZERO, hash_power, money, positive
from hashledger.config import GBTC, RESERVED_ID_PREFIX, USDT, LedgerConfig
from hashledger.errors import (
    AccountBanned, AccountExists, AccountFrozen, AccountNotFound, InsufficientBalance,
    InvalidAmount, InvalidRequest,
)
from hashledger.locks import AccountLocks

if TYPE_CHECKING:
    from hashledger.storage import StorageManager

logger = logging.getLogger("account")

_REFERRAL_ALPHABET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8


# ---------------------------------------------------------------------------
# Shared helpers (call inside a unit of work)
# ---------------------------------------------------------------------------

async def load_account(storage: "StorageManager", account_id: str, mutating: bool = True) -> dict:
    acct = await storage.accounts.get(account_id)
    if acct is None:
        raise AccountNotFound(f"Account '{account_id}' not found")
    if mutating:
        if acct["is_banned"]:
            raise AccountBanned(f"Account '{account_id}' is banned")
        if acct["is_frozen"]:
            raise AccountFrozen(f"Account '{account_id}' is frozen")
    return acct


async def adjust_balance(
    storage: "StorageManager",
    account_id: str,
    currency: str,
    delta: Decimal,
    tx_type: str,
    reference_id: str = "",
    now: Optional[float] = None,
) -> Decimal:
    """Apply a signed delta to one balance and journal it.  Returns the new balance."""
    acct = await storage.accounts.get(account_id)
    if acct is None:
        raise AccountNotFound(f"Account '{account_id}' not found")
    field = "usdt_balance" if currency == USDT else "gbtc_balance"
    new_balance = acct[field] + delta
    if new_balance < ZERO:
        raise InsufficientBalance(
            f"Insufficient {currency} balance: have {acct[field]}, need {-delta}"
        )
    await storage.accounts.set_balance(account_id, currency, new_balance)
    await storage.transactions.record(account_id, tx_type, currency, delta, reference_id, now=now)
    return new_balance


def public_view(acct: dict) -> dict:
    """Account fields safe to show to their owner (no api_key)."""
    return {
        "account_id": acct["account_id"],
        "referral_code": acct["referral_code"],
        "referred_by": acct["referred_by"],
        "usdt_balance": acct["usdt_balance"],
        "gbtc_balance": acct["gbtc_balance"],
        "base_hash_power": acct["base_hash_power"],
        "referral_hash_bonus": acct["referral_hash_bonus"],
        "hash_power": acct["hash_power"],
        "total_referral_earnings": acct["total_referral_earnings"],
        "is_admin": acct["is_admin"],
        "is_frozen": acct["is_frozen"],
        "is_banned": acct["is_banned"],
        "created_at": acct["created_at"],
    }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AccountService:
    """Account lifecycle and hash-power purchases."""

    def __init__(self, storage: "StorageManager", locks: AccountLocks, config: LedgerConfig):
        self.storage = storage
        self.locks = locks
        self.config = config

    @staticmethod
    def generate_referral_code() -> str:
        return "".join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))

    async def create_account(
        self,
        account_id: str,
        referred_by: Optional[str] = None,
        api_key: str = "",
        is_admin: bool = False,
    ) -> dict:
        account_id = (account_id or "").strip()
        if not account_id or len(account_id) > 64:
            raise InvalidRequest("Account id must be 1-64 characters")
        if account_id.startswith(RESERVED_ID_PREFIX):
            raise InvalidRequest(f"Account ids starting with '{RESERVED_ID_PREFIX}' are reserved")

        async def _create():
            if await self.storage.accounts.get(account_id) is not None:
                raise AccountExists(f"Account '{account_id}' already exists")
            referrer_code = None
            if referred_by:
                referrer = await self.storage.accounts.get_by_referral_code(referred_by)
                # Unknown referral codes are ignored rather than rejected.
                if referrer is not None:
                    referrer_code = referred_by
            code = self.generate_referral_code()
            while await self.storage.accounts.get_by_referral_code(code) is not None:
                code = self.generate_referral_code()
            return await self.storage.accounts.create(
                account_id, code, referred_by=referrer_code, api_key=api_key, is_admin=is_admin,
            )

        async with self.locks.hold(account_id):
            acct = await self.storage.atomic(_create)
        logger.info("Created account %s referred_by=%s", account_id, acct["referred_by"] or "-")
        return acct

    async def get_account(self, account_id: str) -> Optional[dict]:
        async with self.storage.reading():
            return await self.storage.accounts.get(account_id)

    async def list_accounts(self) -> List[dict]:
        async with self.storage.reading():
            accounts = await self.storage.accounts.list_all()
        return [public_view(a) for a in accounts]

    async def get_balance(self, account_id: str, now: Optional[float] = None) -> dict:
        now = now if now is not None else time.time()
        async with self.storage.reading():
            acct = await self.storage.accounts.get(account_id)
            if acct is None:
                raise AccountNotFound(f"Account '{account_id}' not found")
            unclaimed = await self.storage.rewards.live_total(account_id, now)
            staked = await self.storage.stakes.staked_total(account_id=account_id)
        return {
            "account_id": account_id,
            "usdt": acct["usdt_balance"],
            "gbtc": acct["gbtc_balance"],
            "unclaimed": unclaimed,
            "staked": staked,
            "hash_power": acct["hash_power"],
        }

    # -------------------------------------------------------------------
    # Hash power
    # -------------------------------------------------------------------

    async def purchase_hash_power(
        self, account_id: str, amount, now: Optional[float] = None,
    ) -> dict:
        """Spend USDT on hash power (1:1) and pay the referrer's commission."""
        amount = positive(amount, USDT)
        if amount < self.config.min_hash_purchase:
            raise InvalidAmount(f"Minimum purchase is {self.config.min_hash_purchase} USDT")
        now = now if now is not None else time.time()

        async with self.storage.reading():
            buyer = await self.storage.accounts.get(account_id)
            referrer = None
            if buyer and buyer["referred_by"]:
                referrer = await self.storage.accounts.get_by_referral_code(buyer["referred_by"])
        referrer_id = referrer["account_id"] if referrer else None
        if referrer_id == account_id:
            referrer_id = None

        async def _purchase():
            acct = await load_account(self.storage, account_id)
            ref = f"hash:{account_id}:{now:.6f}"
            await adjust_balance(self.storage, account_id, USDT, -amount, "hash_purchase", ref, now)
            base = hash_power(acct["base_hash_power"] + amount)
            await self.storage.accounts.set_hash_power(account_id, base, acct["referral_hash_bonus"])
            created = await self.storage.activity.ensure(account_id, now)

            commission = ZERO
            if referrer_id:
                commission = await self._pay_referrer(referrer_id, amount, ref, now)
            result = await self.storage.accounts.get(account_id)
            return result, created, commission

        async with self.locks.hold(account_id, referrer_id):
            acct, activated, commission = await self.storage.atomic(_purchase)

        logger.info(
            "Account %s bought %s hash power (total=%s)%s%s",
            account_id, amount, acct["hash_power"],
            " [mining activated]" if activated else "",
            f" commission={commission} to {referrer_id}" if commission > 0 else "",
        )
        return {
            "account_id": account_id,
            "purchased": amount,
            "hash_power": acct["hash_power"],
            "usdt_balance": acct["usdt_balance"],
            "referral_commission": commission,
        }

    async def _pay_referrer(self, referrer_id: str, amount: Decimal, ref: str, now: float) -> Decimal:
        referrer = await self.storage.accounts.get(referrer_id)
        if referrer is None or referrer["is_banned"]:
            return ZERO
        commission = money(amount * self.config.referral_commission_rate, USDT)
        if commission > 0:
            await adjust_balance(
                self.storage, referrer_id, USDT, commission, "referral_commission", ref, now,
            )
            await self.storage.accounts.set_referral_earnings(
                referrer_id, referrer["total_referral_earnings"] + commission,
            )
        bonus = hash_power(amount * self.config.referral_hash_bonus_rate)
        if bonus > 0:
            await self.storage.accounts.set_hash_power(
                referrer_id, referrer["base_hash_power"], referrer["referral_hash_bonus"] + bonus,
            )
        return commission

    async def list_referrals(self, account_id: str) -> dict:
        async with self.storage.reading():
            acct = await self.storage.accounts.get(account_id)
            if acct is None:
                raise AccountNotFound(f"Account '{account_id}' not found")
            referred = await self.storage.accounts.list_referred(acct["referral_code"])
        referrals = [
            {
                "account_id": r["account_id"],
                "hash_power": r["base_hash_power"],
                "status": "mining" if r["base_hash_power"] > 0 else "inactive",
                "joined_at": r["created_at"],
            }
            for r in referred
        ]
        return {
            "referral_code": acct["referral_code"],
            "total_referrals": len(referrals),
            "active_referrals": sum(1 for r in referrals if r["status"] == "mining"),
            "total_earnings": acct["total_referral_earnings"],
            "referrals": referrals,
        }

    async def history(self, account_id: str, limit: int = 100) -> dict:
        async with self.storage.reading():
            if await self.storage.accounts.get(account_id) is None:
                raise AccountNotFound(f"Account '{account_id}' not found")
            journal = await self.storage.transactions.list_for_account(account_id, limit=limit)
            entries = await self.storage.entries.list_for_account(account_id, limit=limit)
        return {"account_id": account_id, "journal": journal, "entries": entries}

    # -------------------------------------------------------------------
    # Admin flags
    # -------------------------------------------------------------------

    async def freeze(self, account_id: str) -> dict:
        return await self._set_flag(account_id, "is_frozen", True)

    async def unfreeze(self, account_id: str) -> dict:
        return await self._set_flag(account_id, "is_frozen", False)

    async def ban(self, account_id: str) -> dict:
        return await self._set_flag(account_id, "is_banned", True)

    async def unban(self, account_id: str) -> dict:
        return await self._set_flag(account_id, "is_banned", False)

    async def _set_flag(self, account_id: str, flag: str, value: bool) -> dict:
        async def _apply():
            await load_account(self.storage, account_id, mutating=False)
            await self.storage.accounts.set_flag(account_id, flag, value)
            return await self.storage.accounts.get(account_id)

        async with self.locks.hold(account_id):
            acct = await self.storage.atomic(_apply)
        logger.warning("Account %s %s=%s", account_id, flag, value)
        return public_view(acct)


__all__ = [
    "AccountService",
    "adjust_balance",
    "load_account",
    "public_view",
]
