"""Mining router - rewards, hash-power purchases, stats and blocks."""

from fastapi import APIRouter, Header, Query
from starlette.requests import Request

from hashledger.amounts import ZERO
from hashledger.deps import dump, get_server
from hashledger.models import PurchaseRequest

router = APIRouter()


@router.get("/api/rewards/claimable")
async def claimable_rewards(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    rewards = await srv.ledger.get_claimable(acct["account_id"])
    total = sum((r["reward"] for r in rewards), ZERO)
    return dump({"count": len(rewards), "total": total, "rewards": rewards})


@router.post("/api/rewards/claim")
async def claim_all(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    result = await srv.ledger.claim(acct["account_id"])
    return dump(result.to_dict())


@router.post("/api/rewards/{reward_id}/claim")
async def claim_one(
    request: Request,
    reward_id: int,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    result = await srv.ledger.claims.claim_one(acct["account_id"], reward_id)
    return dump(result.to_dict())


@router.post("/api/mining/purchase")
async def purchase_hash_power(
    request: Request,
    req: PurchaseRequest,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    return dump(await srv.ledger.accounts.purchase_hash_power(acct["account_id"], req.amount))


@router.post("/api/mining/resume")
async def resume_mining(
    request: Request,
    x_api_key: str = Header(default=""),
    authorization: str = Header(default=""),
):
    srv = get_server(request)
    acct = await srv.auth.require_user(x_api_key, authorization)
    return dump(await srv.ledger.activity.resume(acct["account_id"]))


@router.get("/api/stats/global")
async def global_stats(request: Request):
    srv = get_server(request)
    return dump(await srv.ledger.get_global_stats())


@router.get("/api/blocks")
async def list_blocks(
    request: Request,
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    srv = get_server(request)
    async with srv.ledger.storage.reading():
        blocks = await srv.ledger.storage.blocks.get_all(limit=limit, offset=offset)
        height = await srv.ledger.storage.blocks.height()
    return dump({"height": height, "blocks": blocks})
