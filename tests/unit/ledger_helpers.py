"""Helpers for building ledger state in tests.

Helpers take an explicit `now` so expiry and cooldown boundaries are
deterministic.
"""

import itertools
from decimal import Decimal

T0 = 1_700_000_000.0
HOUR = 3600.0
DAY = 86400.0

_deposit_seq = itertools.count(1)


async def fund(ledger, account_id, amount, currency="USDT", now=T0):
    """Credit an account through an approved deposit."""
    entry = await ledger.gateway.request_deposit(
        account_id, f"0x{next(_deposit_seq):064x}", amount, "TRC20", currency, now=now,
    )
    return await ledger.gateway.approve_deposit(entry["id"], now=now)


async def give_gbtc(ledger, account_id, amount, now=T0):
    return await fund(ledger, account_id, amount, currency="GBTC", now=now)


async def make_account(ledger, account_id, usdt=None, referred_by=None, is_admin=False):
    acct = await ledger.accounts.create_account(account_id, referred_by=referred_by, is_admin=is_admin)
    if usdt is not None:
        await fund(ledger, account_id, usdt)
    return acct


async def make_miner(ledger, account_id, hash_power, now=T0, referred_by=None):
    """Account that bought `hash_power` at `now` and is therefore active."""
    await make_account(ledger, account_id, usdt=hash_power, referred_by=referred_by)
    await ledger.accounts.purchase_hash_power(account_id, hash_power, now=now)
    return await ledger.accounts.get_account(account_id)


def D(value) -> Decimal:
    return Decimal(str(value))
