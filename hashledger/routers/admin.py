"""Admin router - /api/admin/* review queues, account flags, settings and manual mining."""

from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Query
from starlette.requests import Request

from hashledger.deps import dump, get_server
from hashledger.models import (
    ApproveDepositRequest, ApproveWithdrawalRequest, RejectRequest, TransferLockRequest,
)

router = APIRouter()

_ACCOUNT_ACTIONS = ("freeze", "unfreeze", "ban", "unban")


@router.get("/api/admin/deposits")
async def list_deposits(
    request: Request,
    status: str = Query(default="pending", pattern="^(pending|approved|rejected)$"),
    limit: Optional[int] = Query(default=None, ge=1),
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    return dump(await srv.ledger.gateway.list_deposits(status, limit))


@router.post("/api/admin/deposits/{entry_id}/approve")
async def approve_deposit(
    request: Request,
    entry_id: int,
    req: Optional[ApproveDepositRequest] = None,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    req = req or ApproveDepositRequest()
    return dump(await srv.ledger.approve_deposit(entry_id, req.actual_amount, req.note))


@router.post("/api/admin/deposits/{entry_id}/reject")
async def reject_deposit(
    request: Request,
    entry_id: int,
    req: Optional[RejectRequest] = None,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    reason = req.reason if req else ""
    return dump(await srv.ledger.reject_deposit(entry_id, reason))


@router.get("/api/admin/withdrawals")
async def list_withdrawals(
    request: Request,
    status: str = Query(default="pending", pattern="^(pending|completed|rejected)$"),
    limit: Optional[int] = Query(default=None, ge=1),
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    return dump(await srv.ledger.gateway.list_withdrawals(status, limit))


@router.post("/api/admin/withdrawals/{entry_id}/approve")
async def approve_withdrawal(
    request: Request,
    entry_id: int,
    req: Optional[ApproveWithdrawalRequest] = None,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    tx_hash = req.tx_hash if req else None
    return dump(await srv.ledger.gateway.approve_withdrawal(entry_id, tx_hash))


@router.post("/api/admin/withdrawals/{entry_id}/reject")
async def reject_withdrawal(
    request: Request,
    entry_id: int,
    req: Optional[RejectRequest] = None,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    reason = req.reason if req else None
    return dump(await srv.ledger.gateway.reject_withdrawal(entry_id, reason))


@router.get("/api/admin/accounts")
async def list_accounts(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    return dump(await srv.ledger.accounts.list_accounts())


@router.post("/api/admin/accounts/{account_id}/{action}")
async def account_action(
    request: Request,
    account_id: str,
    action: str,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    if action not in _ACCOUNT_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown account action: {action}")
    handler = getattr(srv.ledger.accounts, action)
    return dump(await handler(account_id))


@router.get("/api/admin/stats")
async def admin_stats(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    return dump(await srv.ledger.supply.get_admin_stats())


@router.get("/api/admin/activity")
async def list_activity(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    return dump(await srv.ledger.activity.list_records())


@router.post("/api/admin/settings/transfer-lock")
async def set_transfer_lock(
    request: Request,
    req: TransferLockRequest,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    mode = await srv.ledger.supply.set_transfer_lock(req.mode)
    return {"mode": mode, "active": await srv.ledger.supply.transfer_lock_active()}


@router.post("/api/admin/mine")
async def mine_block(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    await srv.auth.require_admin(x_api_key, authorization)
    block = await srv.ledger.mine_block_tick()
    return dump({"mined": block is not None, "block": block})
