#!/usr/bin/env python3
"""
Handler decorators.
"""
import time
import logging
from functools import wraps
from typing import Dict, List, Tuple
from telegram import Update
from telegram.ext import CallbackContext

logger = logging.getLogger(__name__)

# Recent requests per chat: chat_id -> [(command, timestamp)]
user_requests: Dict[int, List[Tuple[str, float]]] = {}


def rate_limit(calls: int, period: float):
    """Limits how often a chat may call the decorated handler.

    Args:
        calls (int): Maximum number of calls
        period (float): Window in seconds
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(update: Update, context: CallbackContext, *args, **kwargs):
            current_time = time.time()
            chat_id = update.effective_chat.id
            message = update.message
            command = message.text if message else 'callback'

            # Keep only requests inside the window
            history = [
                (cmd, timestamp)
                for cmd, timestamp in user_requests.get(chat_id, [])
                if current_time - timestamp < period
            ]
            user_requests[chat_id] = history

            if len(history) >= calls:
                time_to_wait = period - (current_time - history[0][1])
                if time_to_wait > 0:
                    logger.warning(f"Rate limit for chat {chat_id}: {len(history)}/{calls} requests")
                    if message:
                        await message.reply_text(
                            f"⚠️ Please wait {time_to_wait:.1f} seconds before the next command."
                        )
                    elif update.callback_query:
                        await update.callback_query.answer("⚠️ Too many requests, please wait.")
                    return

            history.append((command, current_time))
            return await func(update, context, *args, **kwargs)
        return wrapper
    return decorator
