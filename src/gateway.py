#!/usr/bin/env python3
"""
Access to the CoinGecko market data API.

Every upstream attempt waits RATE_LIMIT_DELAY first to stay inside the public
API budget. Results are cached for CACHE_DURATION; concurrent requests for the
same key share one upstream call.
"""
import asyncio
import time
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from config import (
    COINGECKO_API, CACHE_DURATION, RATE_LIMIT_DELAY, MAX_RETRIES, RETRY_BASE_DELAY,
    TOP_COINS_LIMIT
)
from errors import CoinNotFound, InvalidInput, RateLimitExceeded, UpstreamError
from models import CachedQuote, CoinDetail, CoinSummary
from utils import backoff_delays, get_http_session

logger = logging.getLogger(__name__)

TOP_COINS_KEY = 'top_coins'

COIN_DETAIL_PARAMS = {
    'localization': 'false',
    'tickers': 'false',
    'community_data': 'false',
    'developer_data': 'false',
}


class QuoteCache:
    """
    Time based cache of market data payloads.
    Entries are replaced lazily on the first access after they expire.
    """

    def __init__(self, ttl: float = CACHE_DURATION, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CachedQuote] = {}
        self._pending: Dict[str, asyncio.Task] = {}

    def get(self, key: str) -> Optional[CachedQuote]:
        """Returns the entry for key if it is still fresh."""
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.fetched_at < self.ttl:
            return entry
        return None

    async def get_or_refresh(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        """
        Returns the fresh cached payload for key or fetches a new one.
        If a fetch for key is already running, waits for its result instead.
        """
        entry = self.get(key)
        if entry is not None:
            return entry.payload

        task = self._pending.get(key)
        if task is None:
            logger.debug(f"Cache miss for {key}")
            task = asyncio.ensure_future(fetch())
            self._pending[key] = task
            task.add_done_callback(lambda t: self._store(key, t))
        else:
            logger.debug(f"Waiting for the running request of {key}")

        # A cancelled caller must not cancel the fetch other callers wait on
        return await asyncio.shield(task)

    def _store(self, key: str, task: asyncio.Task) -> None:
        self._pending.pop(key, None)
        if task.cancelled() or task.exception() is not None:
            return
        self._entries[key] = CachedQuote(payload=task.result(), fetched_at=self._clock())

    def __len__(self) -> int:
        return len(self._entries)


class MarketDataGateway:
    """Fetches coin details and the top coins snapshot."""

    def __init__(self,
                 session_provider: Callable[[], Awaitable[aiohttp.ClientSession]] = get_http_session,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.monotonic,
                 base_url: str = COINGECKO_API):
        self._session_provider = session_provider
        self._sleep = sleep
        self.base_url = base_url.rstrip('/')
        self.cache = QuoteCache(CACHE_DURATION, clock)

    async def get_coin(self, coin_id: str) -> CoinDetail:
        """
        Returns details for a coin.
        Raises CoinNotFound, RateLimitExceeded or UpstreamError.
        """
        coin_id = (coin_id or '').strip().lower()
        if not coin_id:
            raise InvalidInput("Coin identifier must not be empty")
        return await self.cache.get_or_refresh(f"coin_{coin_id}", lambda: self._fetch_coin(coin_id))

    async def get_top_coins(self) -> List[CoinSummary]:
        """Returns the top coins by market cap, or an empty list on any failure."""
        try:
            return await self.cache.get_or_refresh(TOP_COINS_KEY, self._fetch_top_coins)
        except Exception as e:
            logger.error(f"Error fetching top coins: {e}")
            return []

    async def _fetch_coin(self, coin_id: str) -> CoinDetail:
        data = await self._request(
            f"/coins/{quote(coin_id, safe='-')}",
            params=COIN_DETAIL_PARAMS,
            retries=MAX_RETRIES,
            coin_id=coin_id,
        )
        try:
            return CoinDetail.from_payload(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise UpstreamError(f"Malformed coin payload for {coin_id}: {e}") from e

    async def _fetch_top_coins(self) -> List[CoinSummary]:
        data = await self._request(
            "/coins/markets",
            params={
                'vs_currency': 'usd',
                'order': 'market_cap_desc',
                'per_page': TOP_COINS_LIMIT,
                'page': 1,
            },
            retries=0,
        )
        if not isinstance(data, list):
            raise UpstreamError("Malformed markets payload")
        try:
            return [CoinSummary.from_payload(row) for row in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise UpstreamError(f"Malformed markets payload: {e}") from e

    async def _request(self, path: str, params: Dict[str, Any], retries: int,
                       coin_id: Optional[str] = None) -> Any:
        url = f"{self.base_url}{path}"
        delays = backoff_delays(RETRY_BASE_DELAY, retries)
        attempt = 0

        while True:
            attempt += 1
            await self._sleep(RATE_LIMIT_DELAY)
            try:
                session = await self._session_provider()
                async with session.get(url, params=params) as response:
                    status = response.status
                    if status == 200:
                        return await response.json()
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                raise UpstreamError(f"Request to {url} failed: {e!r}") from e

            if status == 429:
                delay = next(delays, None)
                if delay is None:
                    logger.error(f"Rate limit exceeded for {url} after {attempt} attempts")
                    raise RateLimitExceeded(f"Rate limit exceeded for {url}")
                logger.warning(f"Rate limited on {url}, attempt {attempt}, retrying in {delay:.0f}s")
                await self._sleep(delay)
                continue
            if status == 404:
                raise CoinNotFound(coin_id or path)
            raise UpstreamError(f"HTTP {status} from {url}")
