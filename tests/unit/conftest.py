"""Shared fixtures for the ledger unit tests: a fresh Ledger over in-memory SQLite."""

import pytest
import pytest_asyncio

from hashledger.config import LedgerConfig
from hashledger.ledger import Ledger


@pytest.fixture
def config():
    return LedgerConfig()


@pytest_asyncio.fixture
async def ledger(config):
    lg = Ledger(config, db_path=":memory:")
    await lg.initialize()
    yield lg
    await lg.close()


@pytest.fixture
def storage(ledger):
    return ledger.storage


@pytest_asyncio.fixture
async def make_ledger():
    """Factory for ledgers with a customised LedgerConfig."""
    created = []

    async def _make(**overrides):
        lg = Ledger(LedgerConfig(**overrides), db_path=":memory:")
        await lg.initialize()
        created.append(lg)
        return lg

    yield _make
    for lg in created:
        await lg.close()
