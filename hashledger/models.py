"""Pydantic request models for the REST API.

Amounts are taken as strings so they reach the ledger as exact decimals.
"""

from typing import Optional
from pydantic import BaseModel


class RegisterRequest(BaseModel):
    account_id: str
    referral_code: Optional[str] = None


class LoginRequest(BaseModel):
    api_key: str


class PurchaseRequest(BaseModel):
    amount: str


class DepositRequest(BaseModel):
    tx_hash: str
    amount: str
    network: str = ""
    currency: str = "USDT"


class WithdrawRequest(BaseModel):
    amount: str
    address: str
    currency: str = "USDT"
    network: str = ""


class TransferRequest(BaseModel):
    to_account_id: str
    amount: str
    memo: Optional[str] = None


class StakeRequest(BaseModel):
    amount: str
    term_days: int = 365
    currency: str = "GBTC"


class ApproveDepositRequest(BaseModel):
    actual_amount: Optional[str] = None
    note: Optional[str] = None


class ApproveWithdrawalRequest(BaseModel):
    tx_hash: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = ""


class TransferLockRequest(BaseModel):
    mode: str
