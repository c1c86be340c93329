#!/usr/bin/env python3
"""
Inline keyboards for the alert dialogue.
"""
import logging
from typing import List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from callbacks import Cancel, Confirm, Edit, SelectCoin, SelectCondition, encode
from errors import InvalidInput
from models import Alert, Condition

logger = logging.getLogger(__name__)


def _fits_dialogue(coin: str) -> bool:
    """True if every button of the dialogue can carry this coin."""
    try:
        encode(SelectCoin(coin))
        encode(Edit(coin))
        for condition in Condition:
            encode(SelectCondition(coin, condition))
    except InvalidInput:
        return False
    return True


def get_coin_keyboard(coins: List[str]) -> InlineKeyboardMarkup:
    """One button per coin."""
    keyboard = []
    for coin in coins:
        if not _fits_dialogue(coin):
            logger.warning(f"Skipping coin {coin}: identifier too long for a button")
            continue
        keyboard.append([InlineKeyboardButton(coin, callback_data=encode(SelectCoin(coin)))])
    return InlineKeyboardMarkup(keyboard)


def get_condition_keyboard(coin: str) -> InlineKeyboardMarkup:
    """Returns the >, <, = choices for a coin."""
    keyboard = [
        [InlineKeyboardButton(condition.value, callback_data=encode(SelectCondition(coin, condition)))]
        for condition in Condition
    ]
    return InlineKeyboardMarkup(keyboard)


def get_confirm_keyboard(alert: Alert) -> InlineKeyboardMarkup:
    """Confirm / edit / cancel for a drafted alert."""
    keyboard = [
        [InlineKeyboardButton("✅ Confirm", callback_data=encode(Confirm(alert.condition, alert.price)))],
        [InlineKeyboardButton("✏️ Edit", callback_data=encode(Edit(alert.coin)))],
        [InlineKeyboardButton("❌ Cancel", callback_data=encode(Cancel()))],
    ]
    return InlineKeyboardMarkup(keyboard)
