#!/usr/bin/env python3
"""
HTTP health check endpoints and the optional keep-alive self ping.
"""
import asyncio
import time
import logging
from datetime import datetime, timezone

import aiohttp
from aiohttp import web

from config import KEEPALIVE_INTERVAL
from errors import StoreError
from storage import AlertStore
from utils import get_http_session

logger = logging.getLogger(__name__)

STORE_KEY = web.AppKey('store', AlertStore)
STARTED_KEY = web.AppKey('started', float)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def index(request: web.Request) -> web.Response:
    return web.json_response({
        'status': 'Crypto Bot is running!',
        'timestamp': _now_iso(),
        'uptime': time.monotonic() - request.app[STARTED_KEY],
    })


async def ping(request: web.Request) -> web.Response:
    return web.json_response({'pong': True, 'time': int(time.time() * 1000)})


async def status(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    try:
        alerts = await store.count_alerts()
        favorites = await store.count_favorites()
    except StoreError as e:
        logger.error(f"Health status failed: {e}")
        return web.json_response({'error': 'Database error'}, status=500)

    return web.json_response({
        'status': 'healthy',
        'alerts': alerts,
        'favorites': favorites,
        'uptime': time.monotonic() - request.app[STARTED_KEY],
        'timestamp': _now_iso(),
    })


def create_app(store: AlertStore) -> web.Application:
    app = web.Application()
    app[STORE_KEY] = store
    app[STARTED_KEY] = time.monotonic()
    app.router.add_get('/', index)
    app.router.add_get('/ping', ping)
    app.router.add_get('/status', status)
    return app


async def start_health_server(store: AlertStore, port: int) -> web.AppRunner:
    """Starts the health server in the running loop. Call runner.cleanup() to stop it."""
    runner = web.AppRunner(create_app(store))
    await runner.setup()
    site = web.TCPSite(runner, '0.0.0.0', port)
    await site.start()
    logger.info(f"Health check server running on port {port}")
    return runner


async def ping_self(base_url: str, session_provider=get_http_session) -> bool:
    """Requests our own /ping. Returns False on failure."""
    url = f"{base_url.rstrip('/')}/ping"
    try:
        session = await session_provider()
        async with session.get(url) as response:
            if response.status == 200:
                logger.info("Keep-alive ping sent")
                return True
            logger.error(f"Keep-alive ping failed: HTTP {response.status}")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"Keep-alive ping failed: {e!r}")
    return False


async def keep_alive(base_url: str, interval: float = KEEPALIVE_INTERVAL,
                     session_provider=get_http_session, sleep=asyncio.sleep) -> None:
    """Pings base_url every interval seconds until cancelled."""
    while True:
        await sleep(interval)
        await ping_self(base_url, session_provider)
