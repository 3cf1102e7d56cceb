"""
test_account.py - Unit tests for account creation, hash-power purchases and admin flags.
"""

import pytest

from hashledger.errors import (
    AccountExists, AccountFrozen, AccountNotFound, InsufficientBalance, InvalidAmount,
    InvalidRequest,
)

from ledger_helpers import D, T0, make_account, make_miner

pytestmark = pytest.mark.asyncio


class TestCreateAccount:

    async def test_create(self, ledger):
        acct = await ledger.accounts.create_account("alice")
        assert acct["account_id"] == "alice"
        assert len(acct["referral_code"]) == 8
        assert acct["usdt_balance"] == D(0)
        assert acct["is_frozen"] is False

    async def test_duplicate(self, ledger):
        await ledger.accounts.create_account("alice")
        with pytest.raises(AccountExists):
            await ledger.accounts.create_account("alice")

    async def test_blank_id(self, ledger):
        with pytest.raises(InvalidRequest):
            await ledger.accounts.create_account("   ")

    @pytest.mark.parametrize("account_id", ["_admin", "_platform"])
    async def test_reserved_ids_rejected(self, ledger, account_id):
        with pytest.raises(InvalidRequest):
            await ledger.accounts.create_account(account_id)
        assert await ledger.accounts.get_account(account_id) is None

    async def test_unknown_referral_code_ignored(self, ledger):
        acct = await ledger.accounts.create_account("alice", referred_by="NOSUCHCD")
        assert acct["referred_by"] is None

    async def test_known_referral_code_kept(self, ledger):
        ref = await ledger.accounts.create_account("ref")
        acct = await ledger.accounts.create_account("alice", referred_by=ref["referral_code"])
        assert acct["referred_by"] == ref["referral_code"]


class TestPurchase:

    async def test_purchase_converts_usdt_to_hash_power(self, ledger):
        await make_account(ledger, "alice", usdt="150")
        result = await ledger.accounts.purchase_hash_power("alice", "100", now=T0)
        assert result["hash_power"] == D(100)
        assert result["usdt_balance"] == D(50)
        assert result["referral_commission"] == D(0)

    async def test_minimum_purchase(self, ledger):
        await make_account(ledger, "alice", usdt="10")
        with pytest.raises(InvalidAmount):
            await ledger.accounts.purchase_hash_power("alice", "0.99", now=T0)

    async def test_insufficient_usdt(self, ledger):
        await make_account(ledger, "alice", usdt="10")
        with pytest.raises(InsufficientBalance):
            await ledger.accounts.purchase_hash_power("alice", "11", now=T0)
        acct = await ledger.accounts.get_account("alice")
        assert acct["hash_power"] == D(0)
        assert await ledger.activity.is_eligible("alice") is False

    async def test_referrer_commission(self, ledger):
        ref = await make_account(ledger, "ref")
        await make_miner(ledger, "alice", 100, referred_by=ref["referral_code"])

        referrer = await ledger.accounts.get_account("ref")
        assert referrer["usdt_balance"] == D(10)
        assert referrer["total_referral_earnings"] == D(10)
        assert referrer["hash_power"] == D(0)

        referrals = await ledger.accounts.list_referrals("ref")
        assert referrals["total_referrals"] == 1
        assert referrals["active_referrals"] == 1
        assert referrals["total_earnings"] == D(10)
        assert referrals["referrals"][0]["account_id"] == "alice"

    async def test_referral_hash_bonus(self, make_ledger):
        ledger = await make_ledger(referral_hash_bonus_rate=D("0.05"))
        ref = await make_account(ledger, "ref")
        await make_miner(ledger, "alice", 100, referred_by=ref["referral_code"])
        referrer = await ledger.accounts.get_account("ref")
        assert referrer["referral_hash_bonus"] == D(5)
        assert referrer["hash_power"] == D(5)

    async def test_frozen_cannot_purchase(self, ledger):
        await make_account(ledger, "alice", usdt="10")
        await ledger.accounts.freeze("alice")
        with pytest.raises(AccountFrozen):
            await ledger.accounts.purchase_hash_power("alice", "5", now=T0)
        await ledger.accounts.unfreeze("alice")
        result = await ledger.accounts.purchase_hash_power("alice", "5", now=T0)
        assert result["hash_power"] == D(5)


class TestViews:

    async def test_balance_view(self, ledger):
        await make_miner(ledger, "alice", 100)
        await ledger.mine_block_tick(now=T0 + 60)
        balance = await ledger.get_balance("alice", now=T0 + 120)
        assert balance == {
            "account_id": "alice",
            "usdt": D(0),
            "gbtc": D(0),
            "unclaimed": D(50),
            "staked": D(0),
            "hash_power": D(100),
        }

    async def test_balance_unknown_account(self, ledger):
        with pytest.raises(AccountNotFound):
            await ledger.get_balance("ghost")

    async def test_history(self, ledger):
        await make_miner(ledger, "alice", 100)
        history = await ledger.accounts.history("alice")
        assert sorted(j["type"] for j in history["journal"]) == ["deposit", "hash_purchase"]
        assert [e["kind"] for e in history["entries"]] == ["deposit"]

    async def test_list_accounts_hides_api_key(self, ledger):
        await ledger.accounts.create_account("alice", api_key="secret")
        accounts = await ledger.accounts.list_accounts()
        assert [a["account_id"] for a in accounts] == ["alice"]
        assert "api_key" not in accounts[0]
