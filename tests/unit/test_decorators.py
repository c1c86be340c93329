import pytest

from decorators import rate_limit
from tests.helpers.fakes import make_update


@rate_limit(calls=2, period=60)
async def handler(update, context):
    return "handled"


@pytest.mark.asyncio
async def test_rate_limit_blocks_after_limit():
    update = make_update(text="/coin bitcoin")

    assert await handler(update, None) == "handled"
    assert await handler(update, None) == "handled"
    assert await handler(update, None) is None

    assert update.message.last_reply.startswith("⚠️ Please wait")


@pytest.mark.asyncio
async def test_rate_limit_is_per_chat():
    for _ in range(2):
        await handler(make_update(chat_id=1, text="/list"), None)

    assert await handler(make_update(chat_id=2, text="/list"), None) == "handled"


@pytest.mark.asyncio
async def test_rate_limited_callback_is_answered():
    for _ in range(2):
        await handler(make_update(callback_data="cancel"), None)

    update = make_update(callback_data="cancel")
    assert await handler(update, None) is None
    assert update.callback_query.answers == ["⚠️ Too many requests, please wait."]
