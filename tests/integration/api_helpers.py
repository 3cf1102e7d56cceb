"""Request helpers shared by the API integration tests."""

import itertools
from typing import Optional

ADMIN_KEY = "integration-admin-key"
ADMIN = {"X-API-Key": ADMIN_KEY}

_tx_seq = itertools.count(1)


async def register(client, account_id: str, referral_code: Optional[str] = None) -> dict:
    """Register an account and return headers authenticating as it."""
    body = {"account_id": account_id}
    if referral_code:
        body["referral_code"] = referral_code
    resp = await client.post("/api/auth/register", json=body)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    return {"X-API-Key": data["api_key"], "_account": data}


def auth(user: dict) -> dict:
    return {"X-API-Key": user["X-API-Key"]}


async def deposit_and_approve(client, user: dict, amount: str) -> dict:
    tx_hash = f"0x{next(_tx_seq):064x}"
    resp = await client.post(
        "/api/deposits", headers=auth(user), json={"tx_hash": tx_hash, "amount": amount},
    )
    assert resp.status_code == 200, resp.text
    entry = resp.json()
    resp = await client.post(f"/api/admin/deposits/{entry['id']}/approve", headers=ADMIN)
    assert resp.status_code == 200, resp.text
    return resp.json()
