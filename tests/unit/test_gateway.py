import asyncio

import aiohttp
import pytest

from errors import CoinNotFound, InvalidInput, RateLimitExceeded, UpstreamError
from gateway import MarketDataGateway, QuoteCache
from tests.helpers.fakes import FakeClock, FakeResponse, FakeSession, RecordingSleep, coin_payload


def _gateway(session, clock=None, sleep=None):
    return MarketDataGateway(
        session_provider=session.provider,
        sleep=sleep or RecordingSleep(),
        clock=clock or FakeClock(),
        base_url="https://api.test/v3",
    )


@pytest.mark.asyncio
async def test_get_coin_parses_detail_and_sends_flags():
    session = FakeSession(FakeResponse(200, coin_payload()))
    gw = _gateway(session)

    coin = await gw.get_coin(" Bitcoin ")

    assert coin.id == "bitcoin"
    assert coin.symbol == "BTC"
    assert coin.price == 30000.0
    assert coin.homepage == "https://bitcoin.org"
    url, params = session.calls[0]
    assert url == "https://api.test/v3/coins/bitcoin"
    assert params == {
        "localization": "false",
        "tickers": "false",
        "community_data": "false",
        "developer_data": "false",
    }


@pytest.mark.asyncio
async def test_get_coin_cached_within_window():
    session = FakeSession(FakeResponse(200, coin_payload()))
    clock = FakeClock()
    sleep = RecordingSleep()
    gw = _gateway(session, clock, sleep)

    await gw.get_coin("bitcoin")
    clock.advance(299)
    await gw.get_coin("bitcoin")

    assert len(session.calls) == 1
    # the rate limit delay only precedes upstream calls
    assert sleep.delays == [1.2]


@pytest.mark.asyncio
async def test_get_coin_refetches_after_window():
    session = FakeSession(FakeResponse(200, coin_payload()))
    clock = FakeClock()
    gw = _gateway(session, clock)

    await gw.get_coin("bitcoin")
    clock.advance(300)
    await gw.get_coin("bitcoin")

    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_requests_share_one_upstream_call():
    session = FakeSession(FakeResponse(200, coin_payload()))
    gw = _gateway(session)

    first, second = await asyncio.gather(gw.get_coin("bitcoin"), gw.get_coin("bitcoin"))

    assert first is second
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_429_retried_three_times_then_rate_limit_exceeded():
    session = FakeSession(FakeResponse(429))
    sleep = RecordingSleep()
    gw = _gateway(session, sleep=sleep)

    with pytest.raises(RateLimitExceeded):
        await gw.get_coin("bitcoin")

    assert len(session.calls) == 4
    # every attempt waits 1.2s, retries back off 1s, 2s, 4s
    assert sleep.delays == [1.2, 1.0, 1.2, 2.0, 1.2, 4.0, 1.2]


@pytest.mark.asyncio
async def test_429_then_success():
    session = FakeSession(FakeResponse(429), FakeResponse(200, coin_payload()))
    sleep = RecordingSleep()
    gw = _gateway(session, sleep=sleep)

    coin = await gw.get_coin("bitcoin")

    assert coin.name == "Bitcoin"
    assert len(session.calls) == 2
    assert sleep.delays == [1.2, 1.0, 1.2]


@pytest.mark.asyncio
async def test_404_fails_immediately():
    session = FakeSession(FakeResponse(404))
    sleep = RecordingSleep()
    gw = _gateway(session, sleep=sleep)

    with pytest.raises(CoinNotFound):
        await gw.get_coin("nocoin")

    assert len(session.calls) == 1
    assert sleep.delays == [1.2]


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    session = FakeSession(FakeResponse(404), FakeResponse(200, coin_payload("nocoin")))
    gw = _gateway(session)

    with pytest.raises(CoinNotFound):
        await gw.get_coin("nocoin")
    coin = await gw.get_coin("nocoin")

    assert coin.id == "nocoin"
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_server_error_is_not_retried():
    session = FakeSession(FakeResponse(503))
    gw = _gateway(session)

    with pytest.raises(UpstreamError):
        await gw.get_coin("bitcoin")
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_network_error_becomes_upstream_error():
    session = FakeSession(aiohttp.ClientConnectionError("boom"))
    gw = _gateway(session)

    with pytest.raises(UpstreamError):
        await gw.get_coin("bitcoin")
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_empty_coin_id_rejected_without_request():
    session = FakeSession(FakeResponse(200, coin_payload()))
    gw = _gateway(session)

    with pytest.raises(InvalidInput):
        await gw.get_coin("  ")
    assert session.calls == []


@pytest.mark.asyncio
async def test_top_coins_parsed_and_cached():
    rows = [
        {"id": "bitcoin", "name": "Bitcoin", "symbol": "btc", "current_price": 30000, "market_cap": 6e11},
        {"id": "ethereum", "name": "Ethereum", "symbol": "eth", "current_price": 2000, "market_cap": 2.4e11},
    ]
    session = FakeSession(FakeResponse(200, rows))
    gw = _gateway(session)

    first = await gw.get_top_coins()
    second = await gw.get_top_coins()

    assert [c.id for c in first] == ["bitcoin", "ethereum"]
    assert first[0].symbol == "BTC"
    assert second == first
    assert len(session.calls) == 1
    url, params = session.calls[0]
    assert url == "https://api.test/v3/coins/markets"
    assert params == {"vs_currency": "usd", "order": "market_cap_desc", "per_page": 10, "page": 1}


@pytest.mark.asyncio
async def test_top_coins_degrade_to_empty_without_retry():
    session = FakeSession(FakeResponse(429), FakeResponse(200, []))
    gw = _gateway(session)

    assert await gw.get_top_coins() == []
    assert len(session.calls) == 1

    # the failure was not cached
    assert await gw.get_top_coins() == []
    assert len(session.calls) == 2


@pytest.mark.asyncio
async def test_quote_cache_entries_expire_lazily():
    clock = FakeClock()
    cache = QuoteCache(ttl=10, clock=clock)
    calls = []

    async def fetch():
        calls.append(1)
        return len(calls)

    assert await cache.get_or_refresh("k", fetch) == 1
    assert await cache.get_or_refresh("k", fetch) == 1
    clock.advance(10)
    assert cache.get("k") is None
    assert len(cache) == 1
    assert await cache.get_or_refresh("k", fetch) == 2
