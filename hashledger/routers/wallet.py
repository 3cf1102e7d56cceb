"""Wallet router - /api/deposits, /api/withdrawals, /api/transfers, /api/stakes."""

from fastapi import APIRouter, Header
from starlette.requests import Request

from hashledger.deps import dump, get_server
from hashledger.models import DepositRequest, StakeRequest, TransferRequest, WithdrawRequest

router = APIRouter()


@router.post("/api/deposits")
async def request_deposit(
    request: Request,
    req: DepositRequest,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    entry = await srv.ledger.request_deposit(
        acct["account_id"], req.tx_hash, req.amount, req.network, req.currency,
    )
    return dump(entry)


@router.post("/api/withdrawals")
async def request_withdrawal(
    request: Request,
    req: WithdrawRequest,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    entry = await srv.ledger.request_withdrawal(
        acct["account_id"], req.amount, req.address, req.currency, req.network,
    )
    return dump(entry)


@router.post("/api/transfers")
async def transfer(
    request: Request,
    req: TransferRequest,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    entry = await srv.ledger.transfer(acct["account_id"], req.to_account_id, req.amount, req.memo)
    return dump(entry)


@router.post("/api/stakes")
async def create_stake(
    request: Request,
    req: StakeRequest,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    stake = await srv.ledger.create_stake(acct["account_id"], req.amount, req.term_days, req.currency)
    return dump(stake)


@router.get("/api/stakes")
async def list_stakes(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    stakes = await srv.ledger.gateway.list_stakes(acct["account_id"])
    return dump({"count": len(stakes), "stakes": stakes})
