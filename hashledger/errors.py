"""
errors.py - Typed ledger outcomes.

Each error is an expected, user-facing result of a ledger operation.  The
HTTP layer renders them with their status_code; nothing here is fatal.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for every ledger outcome other than success."""

    code = "ledger_error"
    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class InsufficientBalance(LedgerError):
    code = "insufficient_balance"
    status_code = 400


class CooldownActive(LedgerError):
    code = "cooldown_active"
    status_code = 429

    def __init__(self, message: str = "", retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["retry_after"] = round(self.retry_after, 3)
        return d


class NoClaimableRewards(LedgerError):
    code = "no_claimable_rewards"
    status_code = 404


class TransferDisabled(LedgerError):
    code = "transfer_disabled"
    status_code = 403


class DuplicateTxHash(LedgerError):
    code = "duplicate_tx_hash"
    status_code = 409


class AccountFrozen(LedgerError):
    code = "account_frozen"
    status_code = 403


class AccountBanned(LedgerError):
    code = "account_banned"
    status_code = 403


class AllocationConflict(LedgerError):
    code = "allocation_conflict"
    status_code = 409


class TemporarilyUnavailable(LedgerError):
    code = "temporarily_unavailable"
    status_code = 503


class AccountNotFound(LedgerError):
    code = "account_not_found"
    status_code = 404


class AccountExists(LedgerError):
    code = "account_exists"
    status_code = 409


class EntryNotFound(LedgerError):
    code = "entry_not_found"
    status_code = 404


class InvalidAmount(LedgerError):
    code = "invalid_amount"
    status_code = 400


class InvalidRequest(LedgerError):
    code = "invalid_request"
    status_code = 400


class InvalidStatusTransition(LedgerError):
    code = "invalid_status_transition"
    status_code = 409

    def __init__(self, entry_id: int, current: Optional[str], target: str):
        super().__init__(
            f"Entry {entry_id} cannot move from {current or 'unknown'} to {target}"
        )
        self.entry_id = entry_id
        self.current = current
        self.target = target
