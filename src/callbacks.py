#!/usr/bin/env python3
"""
Callback data carried by the inline keyboards of the alert dialogue.

Each button carries one of the actions below, encoded as `tag|field|...`.
Incoming callback data is decoded once, in handlers.handle_callback_query.
"""
from dataclasses import dataclass
from typing import Union

from errors import InvalidInput
from models import Condition
from utils import validate_price

SEPARATOR = '|'
MAX_CALLBACK_BYTES = 64  # Telegram limit for callback_data


@dataclass(frozen=True)
class SelectCoin:
    coin: str


@dataclass(frozen=True)
class SelectCondition:
    coin: str
    condition: Condition


@dataclass(frozen=True)
class Confirm:
    """The coin is taken from the dialogue state, keeping the token short."""
    condition: Condition
    price: float


@dataclass(frozen=True)
class Edit:
    coin: str


@dataclass(frozen=True)
class Cancel:
    pass


CallbackAction = Union[SelectCoin, SelectCondition, Confirm, Edit, Cancel]


def encode(action: CallbackAction) -> str:
    if isinstance(action, SelectCoin):
        parts = ['coin', action.coin]
    elif isinstance(action, SelectCondition):
        parts = ['cond', action.coin, action.condition.value]
    elif isinstance(action, Confirm):
        parts = ['ok', action.condition.value, repr(float(action.price))]
    elif isinstance(action, Edit):
        parts = ['edit', action.coin]
    elif isinstance(action, Cancel):
        parts = ['cancel']
    else:
        raise TypeError(f"Unknown callback action: {action!r}")

    data = SEPARATOR.join(parts)
    if len(data.encode('utf-8')) > MAX_CALLBACK_BYTES:
        raise InvalidInput(f"Callback data too long: {data}")
    return data


def decode(data: str) -> CallbackAction:
    """Parses callback data. Raises InvalidInput for anything malformed."""
    tag, *fields = (data or '').split(SEPARATOR)

    if tag == 'coin' and len(fields) == 1 and fields[0]:
        return SelectCoin(coin=fields[0])
    if tag == 'cond' and len(fields) == 2 and fields[0]:
        return SelectCondition(coin=fields[0], condition=Condition.parse(fields[1]))
    if tag == 'ok' and len(fields) == 2:
        is_valid, price, error = validate_price(fields[1])
        if not is_valid:
            raise InvalidInput(f"Invalid price in callback data: {error}")
        return Confirm(condition=Condition.parse(fields[0]), price=price)
    if tag == 'edit' and len(fields) == 1 and fields[0]:
        return Edit(coin=fields[0])
    if tag == 'cancel' and not fields:
        return Cancel()

    raise InvalidInput(f"Unknown callback data: {data!r}")
