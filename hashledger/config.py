"""
config.py - Ledger configuration.

Every tunable of the mining ledger lives on LedgerConfig.  Defaults match the
live platform; tests and the CLI override individual fields.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Tuple

# ---------------------------------------------------------------------------
# Currencies and units
# ---------------------------------------------------------------------------

USDT = "USDT"
GBTC = "GBTC"
CURRENCIES = (USDT, GBTC)

USDT_UNIT = Decimal("0.01")
GBTC_UNIT = Decimal("0.00000001")
HASH_POWER_UNIT = Decimal("0.01")

UNITS: Dict[str, Decimal] = {USDT: USDT_UNIT, GBTC: GBTC_UNIT}

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

HOUR = 3600
DAY = 86400

# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

# Ids with this prefix belong to the platform (the synthetic admin) and
# cannot be registered.
RESERVED_ID_PREFIX = "_"
ADMIN_ACCOUNT_ID = RESERVED_ID_PREFIX + "admin"


@dataclass
class LedgerConfig:
    # Block schedule
    block_interval_sec: float = HOUR
    initial_block_reward: Decimal = Decimal("50")
    max_supply: Decimal = Decimal("2100000")
    halving_interval: int = 4200

    # Rewards and activity
    claim_window_sec: float = 48 * HOUR
    inactivity_window_sec: float = 48 * HOUR

    # Hash power purchases
    min_hash_purchase: Decimal = Decimal("1")
    referral_commission_rate: Decimal = Decimal("0.10")
    referral_hash_bonus_rate: Decimal = Decimal("0")

    # Withdrawals
    withdrawal_cooldown_sec: float = 12 * HOUR
    withdrawal_fees: Dict[str, Decimal] = field(
        default_factory=lambda: {USDT: Decimal("1"), GBTC: Decimal("0")}
    )
    min_withdrawals: Dict[str, Decimal] = field(
        default_factory=lambda: {USDT: Decimal("50"), GBTC: Decimal("0.001")}
    )

    # Transfers
    transfer_unlock_percent: Decimal = Decimal("25")

    # Staking
    stake_apr: Decimal = Decimal("20")
    min_stake: Decimal = Decimal("0.1")
    stake_terms: Tuple[int, ...] = (30, 90, 180, 365)
    stake_payout_interval_sec: float = DAY

    # Store
    tx_timeout_sec: float = 10.0
    store_retries: int = 3
    store_retry_backoff_sec: float = 0.05

    def withdrawal_fee(self, currency: str) -> Decimal:
        return self.withdrawal_fees.get(currency, Decimal("0"))

    def min_withdrawal(self, currency: str) -> Decimal:
        return self.min_withdrawals.get(currency, Decimal("0"))
