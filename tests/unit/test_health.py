import aiohttp
import pytest
from aiohttp import test_utils

from health import create_app, keep_alive, ping_self
from models import Alert
from storage import AlertStore
from tests.helpers.fakes import FakeResponse, FakeSession


class StopLoop(Exception):
    pass


async def _get(app, path):
    async with test_utils.TestClient(test_utils.TestServer(app)) as client:
        response = await client.get(path)
        return response.status, await response.json()


@pytest.mark.asyncio
async def test_status_reports_counts(store):
    await store.add_alert(Alert(owner="1", coin="bitcoin", condition=">", price=1))
    await store.add_favorite("1", "bitcoin")
    await store.add_favorite("2", "ethereum")

    status, body = await _get(create_app(store), "/status")

    assert status == 200
    assert body["status"] == "healthy"
    assert body["alerts"] == 1
    assert body["favorites"] == 2
    assert body["uptime"] >= 0


@pytest.mark.asyncio
async def test_status_reports_database_error():
    status, body = await _get(create_app(AlertStore(":memory:")), "/status")

    assert status == 500
    assert body == {"error": "Database error"}


@pytest.mark.asyncio
async def test_index_and_ping(store):
    app = create_app(store)

    status, body = await _get(app, "/")
    assert status == 200
    assert body["status"] == "Crypto Bot is running!"

    status, body = await _get(create_app(store), "/ping")
    assert status == 200
    assert body["pong"] is True
    assert isinstance(body["time"], int)


@pytest.mark.asyncio
async def test_ping_self_requests_ping_endpoint():
    session = FakeSession(FakeResponse(200, {"pong": True}))

    assert await ping_self("https://bot.example.com/", session.provider) is True
    assert session.calls == [("https://bot.example.com/ping", None)]


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [FakeResponse(503), aiohttp.ClientConnectionError("refused")])
async def test_ping_self_failures_are_reported(response):
    session = FakeSession(response)

    assert await ping_self("https://bot.example.com", session.provider) is False


@pytest.mark.asyncio
async def test_keep_alive_pings_every_interval():
    session = FakeSession(FakeResponse(200))
    delays = []

    async def sleep(delay):
        if len(delays) == 2:
            raise StopLoop
        delays.append(delay)

    with pytest.raises(StopLoop):
        await keep_alive("https://bot.example.com", 840, session.provider, sleep)

    assert delays == [840, 840]
    assert len(session.calls) == 2
