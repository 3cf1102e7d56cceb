"""
Shared fixtures for hashledger API integration tests.

Provides:
 - A MiningPlatform on an in-memory ledger (no background scheduler)
 - An httpx AsyncClient speaking to the app over ASGI
"""

import httpx
import pytest_asyncio

from hashledger.server import MiningPlatform

from api_helpers import ADMIN_KEY


@pytest_asyncio.fixture
async def platform():
    srv = MiningPlatform(
        db_path=":memory:", admin_key=ADMIN_KEY,
        jwt_secret="integration-secret", run_scheduler=False,
    )
    await srv.init_services()
    yield srv
    await srv.close_services()


@pytest_asyncio.fixture
async def client(platform):
    transport = httpx.ASGITransport(app=platform.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
