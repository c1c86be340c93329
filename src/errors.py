#!/usr/bin/env python3
"""
Exceptions raised by the gateway, the store and the alert dialogue.
"""


class BotError(Exception):
    """Base class for every failure the bot reports to users or logs."""


class CoinNotFound(BotError):
    """The market data API does not know the coin identifier."""

    def __init__(self, coin_id: str):
        super().__init__(f"Coin not found: {coin_id}")
        self.coin_id = coin_id


class RateLimitExceeded(BotError):
    """The market data API kept answering 429 after all retries."""


class UpstreamError(BotError):
    """Network failure, timeout or unexpected answer from the market data API."""


class InvalidInput(BotError):
    """Malformed operator, price, command arguments or callback token."""


class StaleSelection(InvalidInput):
    """A keyboard selection that no longer matches the user's dialogue step."""


class StoreError(BotError):
    """Persistence failure."""
