import pytest
import pytest_asyncio

import decorators
from dialogue import AlertDialogue, DialogueStore
from handlers import Services
from storage import AlertStore
from tests.helpers.fakes import FakeGateway, make_coin, summaries


@pytest.fixture(autouse=True)
def reset_rate_limit():
    decorators.user_requests.clear()
    yield
    decorators.user_requests.clear()


@pytest_asyncio.fixture
async def store():
    s = AlertStore(":memory:")
    await s.open()
    yield s
    await s.close()


@pytest.fixture
def gateway():
    return FakeGateway(
        coins={
            "bitcoin": make_coin("bitcoin", "Bitcoin", "BTC", 30000.0),
            "ethereum": make_coin("ethereum", "Ethereum", "ETH", 2000.0),
            "solana": make_coin("solana", "Solana", "SOL", 100.0),
        },
        top=summaries("bitcoin", "ethereum", "tether"),
    )


@pytest.fixture
def dialogue(store, gateway):
    return AlertDialogue(DialogueStore(), gateway, store)


@pytest.fixture
def services(store, gateway, dialogue):
    return Services(gateway=gateway, store=store, dialogue=dialogue)
