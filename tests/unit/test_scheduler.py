"""
test_scheduler.py - Unit tests for block production.

Covers gap-free heights, the reward schedule (halving and supply cap),
skipped ticks and the guarantee that a failed allocation leaves no block.
"""

import pytest

from hashledger.errors import AllocationConflict

from ledger_helpers import D, HOUR, T0, make_miner

pytestmark = pytest.mark.asyncio


async def _blocks(storage):
    async with storage.reading():
        return list(reversed(await storage.blocks.get_all()))


class TestTick:

    async def test_heights_are_gap_free(self, ledger, storage):
        await make_miner(ledger, "alice", 10)
        for i in range(1, 4):
            block = await ledger.mine_block_tick(now=T0 + i * HOUR)
            assert block["height"] == i
        assert [b["height"] for b in await _blocks(storage)] == [1, 2, 3]

    async def test_no_eligible_hash_power_no_block(self, ledger, storage):
        assert await ledger.mine_block_tick(now=T0) is None
        assert await _blocks(storage) == []

    async def test_block_records_snapshot(self, ledger):
        await make_miner(ledger, "alice", 100)
        await make_miner(ledger, "bob", 300)
        block = await ledger.mine_block_tick(now=T0 + HOUR)
        assert block["reward"] == D(50)
        assert block["total_hash_power"] == D(400)
        assert block["participants"] == 2
        assert block["created_at"] == T0 + HOUR

    async def test_rewards_never_exceed_block_reward(self, ledger, storage):
        for name in ("a", "b", "c"):
            await make_miner(ledger, name, 1)
        await ledger.mine_block_tick(now=T0 + HOUR)
        async with storage.reading():
            rows = await storage.rewards.list_for_block(1)
        assert all(r["reward"] == D("16.66666666") for r in rows)
        assert sum(r["reward"] for r in rows) <= D(50)

    async def test_frozen_and_banned_excluded(self, ledger, storage):
        await make_miner(ledger, "alice", 100)
        await make_miner(ledger, "bob", 100)
        await make_miner(ledger, "carol", 100)
        await ledger.accounts.freeze("bob")
        await ledger.accounts.ban("carol")

        block = await ledger.mine_block_tick(now=T0 + HOUR)

        assert block["total_hash_power"] == D(100)
        async with storage.reading():
            rows = await storage.rewards.list_for_block(1)
        assert [r["account_id"] for r in rows] == ["alice"]


class TestFailure:

    async def test_failed_allocation_leaves_no_block(self, ledger, storage, monkeypatch):
        await make_miner(ledger, "alice", 10)

        async def boom(*args, **kwargs):
            raise AllocationConflict("simulated")

        monkeypatch.setattr(ledger.allocator, "allocate_in_tx", boom)
        assert await ledger.mine_block_tick(now=T0 + HOUR) is None
        assert await _blocks(storage) == []
        async with storage.reading():
            assert await storage.settings.get("block_reward") is None

        monkeypatch.undo()
        block = await ledger.mine_block_tick(now=T0 + 2 * HOUR)
        assert block["height"] == 1


class TestRewardSchedule:

    async def test_halving(self, make_ledger):
        ledger = await make_ledger(halving_interval=2)
        await make_miner(ledger, "alice", 10)
        rewards = []
        for i in range(1, 6):
            rewards.append((await ledger.mine_block_tick(now=T0 + i * HOUR))["reward"])
        assert rewards == [D(50), D(50), D(25), D(25), D("12.5")]

    async def test_reward_halves_to_zero(self, make_ledger):
        ledger = await make_ledger(initial_block_reward=D("0.00000002"), halving_interval=1)
        await make_miner(ledger, "alice", 10)
        assert (await ledger.mine_block_tick(now=T0 + HOUR))["reward"] == D("0.00000002")
        assert (await ledger.mine_block_tick(now=T0 + 2 * HOUR))["reward"] == D("0.00000001")
        assert await ledger.mine_block_tick(now=T0 + 3 * HOUR) is None

    async def test_supply_cap_clips_final_block(self, make_ledger):
        ledger = await make_ledger(max_supply=D(120))
        await make_miner(ledger, "alice", 10)
        rewards = []
        for i in range(1, 5):
            block = await ledger.mine_block_tick(now=T0 + i * HOUR)
            rewards.append(block["reward"] if block else None)

        assert rewards == [D(50), D(50), D(20), None]
        stats = await ledger.get_global_stats()
        assert stats["total_mined"] == D(120)
        assert stats["block_reward"] == D(0)
        assert stats["block_height"] == 3


class TestLoop:

    async def test_start_stop(self, ledger):
        await ledger.scheduler.start()
        assert ledger.scheduler.running
        await ledger.scheduler.stop()
        assert not ledger.scheduler.running
