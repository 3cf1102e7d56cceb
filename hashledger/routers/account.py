"""Account router - /api/auth/*, /api/balance, /api/history, /api/referrals."""

from fastapi import APIRouter, Header, HTTPException, Query
from starlette.requests import Request

from hashledger.account import public_view
from hashledger.deps import dump, get_server
from hashledger.models import LoginRequest, RegisterRequest

router = APIRouter()


@router.post("/api/auth/register")
async def auth_register(request: Request, req: RegisterRequest):
    srv = get_server(request)
    acct = await srv.auth.register(req.account_id, req.referral_code)
    body = public_view(acct)
    body["api_key"] = acct["api_key"]
    return dump(body)


@router.post("/api/auth/login")
async def auth_login(request: Request, req: LoginRequest):
    srv = get_server(request)
    result = await srv.auth.login(req.api_key)
    if result is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return result


@router.get("/api/auth/me")
async def auth_me(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.get_current_account(x_api_key, authorization)
    if acct["role"] == "admin" and "referral_code" not in acct:
        return {"account_id": acct["account_id"], "role": "admin"}
    body = public_view(acct)
    body["role"] = acct["role"]
    return dump(body)


@router.get("/api/balance")
async def get_balance(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    return dump(await srv.ledger.get_balance(acct["account_id"]))


@router.get("/api/history")
async def get_history(
    request: Request,
    limit: int = Query(default=100, ge=1, le=1000),
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    return dump(await srv.ledger.accounts.history(acct["account_id"], limit=limit))


@router.get("/api/referrals")
async def get_referrals(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    return dump(await srv.ledger.accounts.list_referrals(acct["account_id"]))
