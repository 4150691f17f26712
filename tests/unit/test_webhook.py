from unittest.mock import AsyncMock

import pytest
from aiogram import Bot, Dispatcher
from aiohttp import test_utils

from bot.webhook import SWEEP_SECRET_HEADER, create_app


SECRET = "sweep-secret"


@pytest.fixture
async def client_factory():
    clients = []

    async def factory(sweep_secret=SECRET, removed=3):
        sweeper = AsyncMock()
        sweeper.sweep = AsyncMock(return_value=removed)
        bot = Bot("123456:TEST-TOKEN")
        app = create_app(bot, Dispatcher(), sweeper, sweep_secret=sweep_secret)
        client = test_utils.TestClient(test_utils.TestServer(app))
        await client.start_server()
        clients.append(client)
        return client, sweeper

    yield factory

    for client in clients:
        await client.close()


@pytest.mark.asyncio
async def test_health(client_factory):
    client, _ = await client_factory()

    response = await client.get("/health")

    assert response.status == 200
    assert await response.json() == {"status": "ok", "service": "join_gate_bot"}


@pytest.mark.asyncio
async def test_sweep_with_valid_secret(client_factory):
    client, sweeper = await client_factory(removed=3)

    response = await client.post("/sweep", headers={SWEEP_SECRET_HEADER: SECRET})

    assert response.status == 200
    assert await response.json() == {"status": "ok", "removed": 3}
    sweeper.sweep.assert_awaited_once()


@pytest.mark.asyncio
async def test_sweep_without_secret_header(client_factory):
    client, sweeper = await client_factory()

    response = await client.post("/sweep")

    assert response.status == 401
    sweeper.sweep.assert_not_awaited()


@pytest.mark.asyncio
async def test_sweep_with_wrong_secret(client_factory):
    client, sweeper = await client_factory()

    response = await client.post("/sweep", headers={SWEEP_SECRET_HEADER: "nope"})

    assert response.status == 403
    sweeper.sweep.assert_not_awaited()


@pytest.mark.asyncio
async def test_sweep_disabled_without_configured_secret(client_factory):
    client, sweeper = await client_factory(sweep_secret=None)

    response = await client.post("/sweep", headers={SWEEP_SECRET_HEADER: SECRET})

    assert response.status == 403
    assert await response.json() == {"error": "sweep disabled"}
    sweeper.sweep.assert_not_awaited()
