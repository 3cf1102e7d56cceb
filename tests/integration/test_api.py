"""
test_api.py - End-to-end REST flows over the in-memory ledger.

Exercises registration, deposits through the admin review queue, hash-power
purchases, manual mining, claims, withdrawals and transfers via HTTP.
"""

import pytest

from api_helpers import ADMIN, auth, deposit_and_approve, register

pytestmark = pytest.mark.asyncio


class TestAuth:

    async def test_register_and_me(self, client):
        user = await register(client, "alice")
        assert len(user["_account"]["api_key"]) == 32

        resp = await client.get("/api/auth/me", headers=auth(user))
        assert resp.status_code == 200
        body = resp.json()
        assert body["account_id"] == "alice"
        assert body["role"] == "user"
        assert "api_key" not in body

    async def test_login_issues_jwt(self, client):
        user = await register(client, "alice")
        resp = await client.post("/api/auth/login", json={"api_key": user["X-API-Key"]})
        assert resp.status_code == 200
        token = resp.json()["token"]

        resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["account_id"] == "alice"

    async def test_login_bad_key(self, client):
        resp = await client.post("/api/auth/login", json={"api_key": "nope"})
        assert resp.status_code == 401

    async def test_missing_credentials(self, client):
        resp = await client.get("/api/balance")
        assert resp.status_code == 401

    async def test_user_cannot_use_admin_routes(self, client):
        user = await register(client, "alice")
        resp = await client.get("/api/admin/deposits", headers=auth(user))
        assert resp.status_code == 403

    async def test_admin_has_no_balance(self, client):
        resp = await client.get("/api/balance", headers=ADMIN)
        assert resp.status_code == 403

    async def test_admin_id_cannot_be_registered(self, client):
        resp = await client.post("/api/auth/register", json={"account_id": "_admin"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_request"

    async def test_duplicate_registration(self, client):
        await register(client, "alice")
        resp = await client.post("/api/auth/register", json={"account_id": "alice"})
        assert resp.status_code == 409
        assert resp.json()["error"] == "account_exists"


class TestMiningFlow:

    async def test_deposit_purchase_mine_claim(self, client):
        user = await register(client, "alice")
        approved = await deposit_and_approve(client, user, "150")
        assert approved["status"] == "approved"

        resp = await client.post("/api/mining/purchase", headers=auth(user), json={"amount": "100"})
        assert resp.status_code == 200
        assert resp.json()["hash_power"] == "100.00"

        resp = await client.post("/api/admin/mine", headers=ADMIN)
        assert resp.status_code == 200
        body = resp.json()
        assert body["mined"] is True
        assert body["block"]["height"] == 1

        resp = await client.get("/api/rewards/claimable", headers=auth(user))
        body = resp.json()
        assert body["count"] == 1
        assert body["total"] == "50.00000000"

        resp = await client.post("/api/rewards/claim", headers=auth(user))
        assert resp.status_code == 200
        assert resp.json()["count"] == 1

        resp = await client.post("/api/rewards/claim", headers=auth(user))
        assert resp.status_code == 404
        assert resp.json()["error"] == "no_claimable_rewards"

        balance = (await client.get("/api/balance", headers=auth(user))).json()
        assert balance["usdt"] == "50.00"
        assert balance["gbtc"] == "50.00000000"
        assert balance["unclaimed"] == "0"

        stats = (await client.get("/api/stats/global")).json()
        assert stats["block_height"] == 1
        assert stats["total_accounts"] == 1

        blocks = (await client.get("/api/blocks")).json()
        assert blocks["height"] == 1
        assert [b["height"] for b in blocks["blocks"]] == [1]

    async def test_mine_without_miners(self, client):
        resp = await client.post("/api/admin/mine", headers=ADMIN)
        assert resp.json() == {"mined": False, "block": None}


class TestWallet:

    async def test_duplicate_deposit_hash(self, client):
        user = await register(client, "alice")
        body = {"tx_hash": "0xABC", "amount": "10"}
        assert (await client.post("/api/deposits", headers=auth(user), json=body)).status_code == 200

        body["tx_hash"] = "0xabc"
        resp = await client.post("/api/deposits", headers=auth(user), json=body)
        assert resp.status_code == 409
        assert resp.json()["error"] == "duplicate_tx_hash"

    async def test_invalid_amount(self, client):
        user = await register(client, "alice")
        resp = await client.post(
            "/api/deposits", headers=auth(user), json={"tx_hash": "0x1", "amount": "-5"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_amount"

    async def test_withdrawal_then_cooldown(self, client):
        user = await register(client, "alice")
        await deposit_and_approve(client, user, "200")

        resp = await client.post(
            "/api/withdrawals", headers=auth(user), json={"amount": "60", "address": "TAddr1"},
        )
        assert resp.status_code == 200
        entry = resp.json()
        assert entry["status"] == "pending"

        pending = (await client.get("/api/admin/withdrawals", headers=ADMIN)).json()
        assert [w["id"] for w in pending] == [entry["id"]]

        resp = await client.post(
            f"/api/admin/withdrawals/{entry['id']}/approve", headers=ADMIN, json={"tx_hash": "0xdone"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

        resp = await client.post(
            "/api/withdrawals", headers=auth(user), json={"amount": "60", "address": "TAddr1"},
        )
        assert resp.status_code == 429
        assert resp.json()["error"] == "cooldown_active"
        assert int(resp.headers["Retry-After"]) > 0

        balance = (await client.get("/api/balance", headers=auth(user))).json()
        assert balance["usdt"] == "139.00"

    async def test_reject_withdrawal_refunds(self, client):
        user = await register(client, "alice")
        await deposit_and_approve(client, user, "100")
        entry = (await client.post(
            "/api/withdrawals", headers=auth(user), json={"amount": "50", "address": "TAddr1"},
        )).json()

        resp = await client.post(
            f"/api/admin/withdrawals/{entry['id']}/reject", headers=ADMIN, json={"reason": "bad address"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "rejected"

        resp = await client.post(f"/api/admin/withdrawals/{entry['id']}/reject", headers=ADMIN)
        assert resp.status_code == 409

        balance = (await client.get("/api/balance", headers=auth(user))).json()
        assert balance["usdt"] == "100.00"

    async def test_transfer_follows_lock(self, client):
        alice = await register(client, "alice")
        await register(client, "bob")
        await deposit_and_approve(client, alice, "100")
        await client.post("/api/mining/purchase", headers=auth(alice), json={"amount": "100"})
        await client.post("/api/admin/mine", headers=ADMIN)
        await client.post("/api/rewards/claim", headers=auth(alice))

        body = {"to_account_id": "bob", "amount": "5", "memo": "thanks"}
        resp = await client.post("/api/transfers", headers=auth(alice), json=body)
        assert resp.status_code == 403
        assert resp.json()["error"] == "transfer_disabled"

        resp = await client.post(
            "/api/admin/settings/transfer-lock", headers=ADMIN, json={"mode": "off"},
        )
        assert resp.json() == {"mode": "off", "active": False}

        resp = await client.post("/api/transfers", headers=auth(alice), json=body)
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"

        alice_balance = (await client.get("/api/balance", headers=auth(alice))).json()
        assert alice_balance["gbtc"] == "45.00000000"

    async def test_bad_lock_mode(self, client):
        resp = await client.post(
            "/api/admin/settings/transfer-lock", headers=ADMIN, json={"mode": "maybe"},
        )
        assert resp.status_code == 400


class TestAdminAccounts:

    async def test_freeze_blocks_activity(self, client):
        user = await register(client, "alice")
        await deposit_and_approve(client, user, "10")

        resp = await client.post("/api/admin/accounts/alice/freeze", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.json()["is_frozen"] is True

        resp = await client.post("/api/mining/purchase", headers=auth(user), json={"amount": "5"})
        assert resp.status_code == 403
        assert resp.json()["error"] == "account_frozen"

    async def test_unknown_action(self, client):
        await register(client, "alice")
        resp = await client.post("/api/admin/accounts/alice/explode", headers=ADMIN)
        assert resp.status_code == 404

    async def test_list_accounts_hides_keys(self, client):
        await register(client, "alice")
        accounts = (await client.get("/api/admin/accounts", headers=ADMIN)).json()
        assert [a["account_id"] for a in accounts] == ["alice"]
        assert all("api_key" not in a for a in accounts)

    async def test_admin_stats_totals(self, client):
        user = await register(client, "alice")
        await deposit_and_approve(client, user, "200")
        await client.post("/api/mining/purchase", headers=auth(user), json={"amount": "100"})
        await client.post("/api/admin/mine", headers=ADMIN)
        await client.post(
            "/api/withdrawals", headers=auth(user), json={"amount": "60", "address": "TAddr1"},
        )

        resp = await client.get("/api/admin/stats", headers=ADMIN)
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["total_accounts"] == 1
        assert stats["active_miners"] == 1
        assert stats["blocks_mined"] == 1
        assert stats["total_hash_power"] == "100.00"
        assert stats["total_deposits"] == {"USDT": "200.00", "GBTC": "0"}
        assert stats["total_withdrawals"] == {"USDT": "0", "GBTC": "0"}
        assert stats["pending_usdt_withdrawals"] == "60.00"

        resp = await client.get("/api/admin/stats", headers=auth(user))
        assert resp.status_code == 403
