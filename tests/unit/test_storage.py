"""
test_storage.py - Unit tests for the unit of work, migrations and schema constraints.
"""

import asyncio
import sqlite3

import pytest
import pytest_asyncio

from hashledger.errors import TemporarilyUnavailable
from hashledger.storage import SCHEMA_VERSION, StorageManager
from hashledger.storage._migrate import run_migrations

from ledger_helpers import D

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def store():
    sm = StorageManager(":memory:", retry_backoff_sec=0)
    await sm.initialize()
    yield sm
    await sm.close()


class TestAtomic:

    async def test_commit(self, store):
        await store.atomic(lambda: store.accounts.create("alice", "CODE0001"))
        async with store.reading():
            assert (await store.accounts.get("alice"))["referral_code"] == "CODE0001"

    async def test_exception_rolls_back_everything(self, store):
        async def work():
            await store.accounts.create("alice", "CODE0001")
            await store.accounts.set_balance("alice", "USDT", D("10.00"))
            raise ValueError("abort")

        with pytest.raises(ValueError):
            await store.atomic(work)

        async with store.reading():
            assert await store.accounts.get("alice") is None

    async def test_negative_balance_rejected_by_schema(self, store):
        await store.atomic(lambda: store.accounts.create("alice", "CODE0001"))
        with pytest.raises(sqlite3.IntegrityError):
            await store.atomic(lambda: store.accounts.set_balance("alice", "USDT", D("-1.00")))

    async def test_busy_errors_retried_then_unavailable(self, store):
        calls = []

        async def work():
            calls.append(1)
            raise sqlite3.OperationalError("database is locked")

        with pytest.raises(TemporarilyUnavailable):
            await store.atomic(work)
        assert len(calls) == store.retries + 1

    async def test_busy_error_recovers(self, store):
        calls = []

        async def work():
            calls.append(1)
            if len(calls) == 1:
                raise sqlite3.OperationalError("database is busy")
            return await store.accounts.create("alice", "CODE0001")

        acct = await store.atomic(work)
        assert acct["account_id"] == "alice"
        assert len(calls) == 2

    async def test_other_operational_errors_propagate(self, store):
        async def work():
            raise sqlite3.OperationalError("no such table: nope")

        with pytest.raises(sqlite3.OperationalError):
            await store.atomic(work)

    async def test_timeout_rolls_back(self, store):
        async def work():
            await store.accounts.create("alice", "CODE0001")
            await asyncio.sleep(1)

        with pytest.raises(TemporarilyUnavailable):
            await store.atomic(work, timeout=0.05)
        async with store.reading():
            assert await store.accounts.get("alice") is None

    async def test_closed_store_unavailable(self):
        sm = StorageManager(":memory:")
        with pytest.raises(TemporarilyUnavailable):
            await sm.atomic(lambda: asyncio.sleep(0))
        with pytest.raises(TemporarilyUnavailable):
            async with sm.reading():
                pass


class TestSchema:

    async def test_schema_version_recorded(self, store):
        async with store.reading():
            async with store._db.execute("SELECT MAX(version) FROM schema_version") as cur:
                row = await cur.fetchone()
        assert row[0] == SCHEMA_VERSION

    async def test_migrations_idempotent(self, store):
        await run_migrations(store._db)
        async with store._db.execute("SELECT COUNT(*) FROM schema_version") as cur:
            row = await cur.fetchone()
        assert row[0] == 1

    async def test_reward_unique_per_account_and_block(self, store):
        async def work():
            await store.accounts.create("alice", "CODE0001")
            await store.blocks.create(1, D(50), D(10), 1, 0.0)
            await store.rewards.create("alice", 1, D(50), "0x1", 0.0, 10.0)
            await store.rewards.create("alice", 1, D(50), "0x2", 0.0, 10.0)

        with pytest.raises(sqlite3.IntegrityError):
            await store.atomic(work)

    async def test_deposit_tx_hash_unique_case_insensitive(self, store):
        async def work():
            await store.accounts.create("alice", "CODE0001")
            await store.entries.create("deposit", "alice", "USDT", D(1), "pending", tx_hash="0xABC")
            await store.entries.create("deposit", "alice", "USDT", D(1), "pending", tx_hash="0xabc")

        with pytest.raises(sqlite3.IntegrityError):
            await store.atomic(work)

    async def test_guarded_transition_happens_once(self, store):
        async def create():
            await store.accounts.create("alice", "CODE0001")
            return await store.entries.create("deposit", "alice", "USDT", D(1), "pending", tx_hash="0x1")

        entry = await store.atomic(create)

        async def move():
            return await store.entries.transition(entry["id"], "pending", "approved", 1.0)

        assert await store.atomic(move) is True
        assert await store.atomic(move) is False
