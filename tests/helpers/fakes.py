from types import SimpleNamespace

import aiosqlite

from errors import CoinNotFound
from models import CoinDetail, CoinSummary


class FakeResponse:
    """aiohttp response stub usable as `async with session.get(...) as resp`."""
    def __init__(self, status=200, payload=None):
        self.status = status
        self._payload = payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def json(self):
        return self._payload


class FakeSession:
    """
    Replays scripted responses in order (the last one repeats).
    Items may be FakeResponse instances or exceptions to raise.
    """
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None):
        self.calls.append((url, params))
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def provider(self):
        return self


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingSleep:
    """Records requested delays without sleeping."""
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def coin_payload(coin_id="bitcoin", name="Bitcoin", symbol="btc", price=30000.0):
    return {
        "id": coin_id,
        "name": name,
        "symbol": symbol,
        "market_cap_rank": 1,
        "market_data": {
            "current_price": {"usd": price},
            "market_cap": {"usd": 600e9},
            "high_24h": {"usd": price * 1.02},
            "low_24h": {"usd": price * 0.98},
            "total_volume": {"usd": 25e9},
        },
        "links": {
            "homepage": ["https://bitcoin.org", ""],
            "blockchain_site": ["https://blockchair.com/bitcoin"],
            "whitepaper": "https://bitcoin.org/bitcoin.pdf",
        },
    }


def make_coin(coin_id="bitcoin", name="Bitcoin", symbol="BTC", price=30000.0):
    return CoinDetail(id=coin_id, name=name, symbol=symbol, price=price)


class FakeGateway:
    """
    In-memory MarketDataGateway replacement.
    `coins` maps id -> CoinDetail or an exception to raise.
    """
    def __init__(self, coins=None, top=None):
        self.coins = dict(coins or {})
        self.top = list(top or [])
        self.calls = []

    async def get_coin(self, coin_id):
        self.calls.append(coin_id)
        item = self.coins.get(coin_id)
        if item is None:
            raise CoinNotFound(coin_id)
        if isinstance(item, BaseException):
            raise item
        return item

    async def get_top_coins(self):
        return list(self.top)


def summaries(*ids):
    return [CoinSummary(id=coin_id, name=coin_id.title(), symbol=coin_id[:3].upper()) for coin_id in ids]


class FakeMessage:
    def __init__(self, text=None, chat_id=42):
        self.text = text
        self.chat_id = chat_id
        self.replies = []

    async def reply_text(self, text, **kwargs):
        self.replies.append((text, kwargs))

    @property
    def last_reply(self):
        return self.replies[-1][0] if self.replies else None


class FakeCallbackQuery:
    def __init__(self, data, chat_id=42):
        self.data = data
        self.message = FakeMessage(chat_id=chat_id)
        self.answers = []
        self.edits = []

    async def answer(self, text=None, **kwargs):
        self.answers.append(text)

    async def edit_message_text(self, text, **kwargs):
        self.edits.append((text, kwargs))


def make_update(chat_id=42, text=None, callback_data=None):
    message = FakeMessage(text, chat_id) if callback_data is None else None
    query = FakeCallbackQuery(callback_data, chat_id) if callback_data is not None else None
    return SimpleNamespace(
        effective_chat=SimpleNamespace(id=chat_id),
        message=message,
        callback_query=query,
    )


def make_context(services, args=None):
    return SimpleNamespace(bot_data={"services": services}, args=args)


async def create_legacy_db(path, rows):
    """Alerts table as written by older versions, without constraints."""
    async with aiosqlite.connect(path) as db:
        await db.execute(
            "CREATE TABLE alerts (id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "chat_id TEXT, coin TEXT, condition TEXT, price REAL)"
        )
        await db.executemany("INSERT INTO alerts (chat_id, coin, condition, price) VALUES (?, ?, ?, ?)", rows)
        await db.commit()
