#!/usr/bin/env python3
"""
HTTP session and input validation helpers.
"""
import math
import logging
from decimal import Decimal, InvalidOperation
from typing import Iterator, Optional, Tuple

import aiohttp

from config import API_TIMEOUT

logger = logging.getLogger(__name__)

# Shared connection pool for upstream HTTP requests
_http_session = None


async def get_http_session() -> aiohttp.ClientSession:
    """Returns the shared HTTP session, creating it on first use."""
    global _http_session
    if _http_session is None or _http_session.closed:
        connector = aiohttp.TCPConnector(
            limit=100,  # total connections
            limit_per_host=30,
            ttl_dns_cache=300,  # DNS cache for 5 minutes
            use_dns_cache=True,
        )
        timeout = aiohttp.ClientTimeout(total=API_TIMEOUT)
        _http_session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={'User-Agent': 'CryptoAlertBot/1.0', 'Accept': 'application/json'}
        )
    return _http_session


async def close_http_session():
    """Closes the shared HTTP session."""
    global _http_session
    if _http_session and not _http_session.closed:
        await _http_session.close()
        _http_session = None


def validate_price(price_str: str) -> Tuple[bool, Optional[float], Optional[str]]:
    """
    Checks a user supplied price.
    Returns a tuple (valid, price, error message).
    """
    try:
        # Strip spaces and accept a comma as decimal separator
        price_str = (price_str or '').strip().replace(",", ".")
        price = float(Decimal(price_str))
    except (ValueError, InvalidOperation):
        return False, None, "Invalid number format"

    if not math.isfinite(price) or price <= 0:
        return False, None, "Price must be a positive number"

    return True, price, None


def format_threshold(price: float) -> str:
    """Plain decimal without trailing zeros: 30000, 0.000012."""
    text = f"{price:.8f}".rstrip('0').rstrip('.')
    return text or '0'


def backoff_delays(initial: float, retries: int) -> Iterator[float]:
    """
    Exponential backoff delays without jitter:
    initial, 2*initial, 4*initial, ... (`retries` values).
    """
    delay = initial
    for _ in range(retries):
        yield delay
        delay *= 2.0
