#!/usr/bin/env python3
"""
Data models for the bot.
"""
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from errors import InvalidInput
from utils import format_threshold


class Condition(Enum):
    """Comparison between the live price and an alert threshold."""
    GT = '>'
    LT = '<'
    EQ = '='

    @classmethod
    def parse(cls, symbol: str) -> "Condition":
        try:
            return cls(symbol.strip())
        except (ValueError, AttributeError):
            raise InvalidInput(f"Invalid condition {symbol!r}. Use >, < or =")


@dataclass
class Alert:
    """Price alert owned by a chat."""
    owner: str
    coin: str
    condition: Condition
    price: float
    id: Optional[int] = None

    def __post_init__(self):
        self.owner = str(self.owner)
        self.coin = (self.coin or '').strip().lower()
        if not self.coin:
            raise InvalidInput("Coin identifier must not be empty")
        if not isinstance(self.condition, Condition):
            self.condition = Condition.parse(self.condition)
        try:
            self.price = float(self.price)
        except (TypeError, ValueError):
            raise InvalidInput(f"Invalid price {self.price!r}")
        if not math.isfinite(self.price) or self.price <= 0:
            raise InvalidInput("Price must be a positive number")

    def describe(self) -> str:
        return f"{self.coin} {self.condition.value} ${format_threshold(self.price)}"


def _usd(market_data: Dict[str, Any], field: str) -> Optional[float]:
    value = (market_data.get(field) or {}).get('usd')
    return float(value) if value is not None else None


@dataclass
class CoinDetail:
    """Single coin as returned by GET /coins/{id}."""
    id: str
    name: str
    symbol: str
    price: Optional[float] = None
    market_cap: Optional[float] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None
    total_volume: Optional[float] = None
    rank: Optional[int] = None
    homepage: str = ''
    explorer: str = ''
    whitepaper: str = ''

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CoinDetail":
        market = data.get('market_data') or {}
        links = data.get('links') or {}
        homepage = [url for url in links.get('homepage') or [] if url]
        explorer = [url for url in links.get('blockchain_site') or [] if url]
        return cls(
            id=data['id'],
            name=data.get('name') or data['id'],
            symbol=(data.get('symbol') or '').upper(),
            price=_usd(market, 'current_price'),
            market_cap=_usd(market, 'market_cap'),
            high_24h=_usd(market, 'high_24h'),
            low_24h=_usd(market, 'low_24h'),
            total_volume=_usd(market, 'total_volume'),
            rank=data.get('market_cap_rank'),
            homepage=homepage[0] if homepage else '',
            explorer=explorer[0] if explorer else '',
            whitepaper=links.get('whitepaper') or '',
        )


@dataclass
class CoinSummary:
    """Row of the /coins/markets snapshot."""
    id: str
    name: str
    symbol: str
    current_price: Optional[float] = None
    market_cap: Optional[float] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CoinSummary":
        return cls(
            id=data['id'],
            name=data.get('name') or data['id'],
            symbol=(data.get('symbol') or '').upper(),
            current_price=data.get('current_price'),
            market_cap=data.get('market_cap'),
        )


@dataclass
class CachedQuote:
    payload: Any
    fetched_at: float


class DialogueStep(Enum):
    AWAITING_COIN = 'awaiting_coin'
    AWAITING_CONDITION = 'awaiting_condition'
    AWAITING_PRICE = 'awaiting_price'
    AWAITING_CONFIRMATION = 'awaiting_confirmation'


@dataclass
class DialogueState:
    """Progress of one user through the alert creation dialogue."""
    step: DialogueStep = DialogueStep.AWAITING_COIN
    coin: Optional[str] = None
    condition: Optional[Condition] = None
