#!/usr/bin/env python3
"""
Command, callback and message handlers for the bot.
"""
import logging
from dataclasses import dataclass

from telegram import Update
from telegram.ext import CallbackContext

from callbacks import Cancel, Confirm, Edit, SelectCoin, SelectCondition, decode
from decorators import rate_limit
from dialogue import AlertDialogue
from errors import BotError, CoinNotFound, InvalidInput, StaleSelection, StoreError
from formatting import coin_label, format_alert_line, format_coin_card, format_number, format_top_coins, md
from gateway import MarketDataGateway
from keyboards import get_coin_keyboard, get_condition_keyboard, get_confirm_keyboard
from storage import AlertStore
from config import RATE_LIMIT

logger = logging.getLogger(__name__)

# Command limits (calls / period in seconds)
COMMAND_LIMITS = {
    'quick': (30, 60),
    'normal': (RATE_LIMIT, 60),
}

WELCOME_TEXT = (
    "🚀 Welcome to Crypto Info Bot!\n\n"
    "Available commands:\n"
    "/coin <id> - Get detailed coin information\n"
    "/alert - Set up price alerts interactively\n"
    "/alert <coin> <condition> <price> - Quick alert setup\n"
    "/alerts - View your active alerts\n"
    "/addfav <coin> - Add coin to favorites\n"
    "/favlist - View your favorite coins\n"
    "/clearfavlist - Clear all favorite coins\n"
    "/list - Show top 10 coins by market cap\n\n"
    "Example: /coin bitcoin or /alert bitcoin > 30000"
)

ALERT_USAGE = "❌ Usage: /alert or /alert <coin> <condition> <price>\nExample: /alert bitcoin > 30000"
COIN_NOT_FOUND = "❌ Error: Could not find coin. Please check the coin id and try again."
EXPIRED = "⌛ This selection has expired. Use /alert to start again."


@dataclass
class Services:
    """Collaborators shared by all handlers, kept in application.bot_data."""
    gateway: MarketDataGateway
    store: AlertStore
    dialogue: AlertDialogue


def get_services(context: CallbackContext) -> Services:
    return context.bot_data['services']


def _owner(update: Update) -> str:
    return str(update.effective_chat.id)


@rate_limit(calls=COMMAND_LIMITS['quick'][0], period=COMMAND_LIMITS['quick'][1])
async def cmd_start(update: Update, context: CallbackContext) -> None:
    """Shows the welcome message with the command list."""
    logger.info(f"🚀 /start from {_owner(update)}")
    await update.message.reply_text(WELCOME_TEXT)


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_coin(update: Update, context: CallbackContext) -> None:
    """Shows market data for one coin."""
    if not context.args:
        await update.message.reply_text("❌ Usage: /coin <id>\nExample: /coin bitcoin")
        return

    coin_id = context.args[0].lower().strip()
    try:
        coin = await get_services(context).gateway.get_coin(coin_id)
    except CoinNotFound:
        await update.message.reply_text(COIN_NOT_FOUND)
        return
    except BotError as e:
        logger.error(f"Error fetching coin data for {coin_id}: {e}")
        await update.message.reply_text("❌ Error: Could not fetch coin data. Please try again later.")
        return

    await update.message.reply_text(format_coin_card(coin), parse_mode='Markdown')


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_alert(update: Update, context: CallbackContext) -> None:
    """Starts the alert dialogue, or creates an alert from `/alert coin op price`."""
    args = context.args or []
    if not args:
        await _start_alert_dialogue(update, context)
    elif len(args) == 3:
        await _create_alert(update, context, *args)
    else:
        await update.message.reply_text(ALERT_USAGE)


async def _start_alert_dialogue(update: Update, context: CallbackContext) -> None:
    owner = _owner(update)
    try:
        coins = await get_services(context).dialogue.start(owner)
    except BotError as e:
        logger.error(f"Error setting up alert for {owner}: {e}")
        await update.message.reply_text("❌ Error setting up alert. Please try again.")
        return

    if not coins:
        await update.message.reply_text("❌ No coins available. Please try again later.")
        return

    await update.message.reply_text(
        "🎯 Select a coin for price alert:",
        reply_markup=get_coin_keyboard(coins)
    )


async def _create_alert(update: Update, context: CallbackContext,
                        coin: str, condition: str, price: str) -> None:
    owner = _owner(update)
    try:
        alert = await get_services(context).dialogue.create_alert(owner, coin, condition, price)
    except InvalidInput as e:
        await update.message.reply_text(f"❌ {e}")
        return
    except CoinNotFound:
        await update.message.reply_text(COIN_NOT_FOUND)
        return
    except BotError as e:
        logger.error(f"Error creating alert for {owner}: {e}")
        await update.message.reply_text("❌ Error saving alert. Please try again.")
        return

    await update.message.reply_text(f"✅ Alert set: {alert.describe()}")


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_alerts(update: Update, context: CallbackContext) -> None:
    """Lists the user's active alerts."""
    services = get_services(context)
    owner = _owner(update)
    try:
        alerts = await services.store.list_alerts(owner)
    except StoreError:
        await update.message.reply_text("❌ Error fetching alerts.")
        return

    if not alerts:
        await update.message.reply_text("📭 No active alerts found.")
        return

    lines = ["🔔 *Your Active Alerts:*", ""]
    for alert in alerts:
        try:
            coin = await services.gateway.get_coin(alert.coin)
        except BotError:
            coin = None
        lines.append(format_alert_line(alert, coin))

    await update.message.reply_text("\n".join(lines), parse_mode='Markdown')


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_addfav(update: Update, context: CallbackContext) -> None:
    """Adds a coin to the user's favorites after checking it exists."""
    if not context.args:
        await update.message.reply_text("❌ Usage: /addfav <coin>\nExample: /addfav bitcoin")
        return

    services = get_services(context)
    owner = _owner(update)
    coin_id = context.args[0].lower().strip()
    try:
        coin = await services.gateway.get_coin(coin_id)
        added = await services.store.add_favorite(owner, coin.id)
    except CoinNotFound:
        await update.message.reply_text(COIN_NOT_FOUND)
        return
    except BotError as e:
        logger.error(f"Error adding favorite {coin_id} for {owner}: {e}")
        await update.message.reply_text("❌ Error adding to favorites.")
        return

    if added:
        await update.message.reply_text(f"⭐ Added {coin.id} to favorites!")
    else:
        await update.message.reply_text(f"⭐ {coin.id} is already in your favorites.")


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_favlist(update: Update, context: CallbackContext) -> None:
    """Lists the user's favorite coins."""
    services = get_services(context)
    try:
        favorites = await services.store.list_favorites(_owner(update))
    except StoreError:
        await update.message.reply_text("❌ Error fetching favorites.")
        return

    if not favorites:
        await update.message.reply_text("📝 No favorite coins found.")
        return

    lines = ["⭐ *Your Favorite Coins:*", ""]
    for coin_id in favorites:
        try:
            coin = await services.gateway.get_coin(coin_id)
        except BotError:
            coin = None
        lines.append(f"• {coin_label(coin, coin_id)}")

    await update.message.reply_text("\n".join(lines), parse_mode='Markdown')


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_clearfavlist(update: Update, context: CallbackContext) -> None:
    """Removes all favorites of the user."""
    try:
        removed = await get_services(context).store.clear_favorites(_owner(update))
    except StoreError:
        await update.message.reply_text("❌ Error clearing favorites list.")
        return

    if removed == 0:
        await update.message.reply_text("📝 No favorites to clear.")
    else:
        await update.message.reply_text(f"🗑️ Cleared {removed} coin(s) from your favorites list.")


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def cmd_list(update: Update, context: CallbackContext) -> None:
    """Shows the top coins by market cap."""
    coins = await get_services(context).gateway.get_top_coins()
    if not coins:
        await update.message.reply_text("❌ Could not fetch top coins. Please try again later.")
        return

    await update.message.reply_text(format_top_coins(coins), parse_mode='Markdown')


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def handle_callback_query(update: Update, context: CallbackContext) -> None:
    """Handles the inline buttons of the alert dialogue."""
    query = update.callback_query
    owner = str(query.message.chat_id)
    dialogue = get_services(context).dialogue

    logger.info(f"🔘 Callback '{query.data}' from {owner}")

    try:
        action = decode(query.data)
    except InvalidInput:
        logger.warning(f"Unknown callback '{query.data}' from {owner}")
        await query.answer("❌ Unknown action")
        return

    notice = None
    try:
        if isinstance(action, SelectCoin):
            coin = await dialogue.select_coin(owner, action.coin)
            if coin is not None:
                await query.edit_message_text(
                    f"🎯 Selected: *{md(coin.name)}* ({md(coin.symbol)})\n"
                    f"💰 Current Price: {format_number(coin.price)}\n\n"
                    f"Now choose condition:",
                    reply_markup=get_condition_keyboard(action.coin),
                    parse_mode='Markdown'
                )
            else:
                await query.edit_message_text(
                    f"🎯 Selected: {action.coin}\nNow choose condition:",
                    reply_markup=get_condition_keyboard(action.coin)
                )

        elif isinstance(action, SelectCondition):
            dialogue.select_condition(owner, action.coin, action.condition)
            await query.edit_message_text(
                f"🎯 {action.coin} {action.condition.value} ?\nPlease enter the target price:"
            )

        elif isinstance(action, Confirm):
            alert = await dialogue.confirm(owner, action.condition, action.price)
            await query.edit_message_text(f"✅ Alert set: {alert.describe()}")

        elif isinstance(action, Edit):
            dialogue.edit(owner, action.coin)
            await query.message.reply_text(
                f"🎯 Editing alert for {action.coin}\nChoose condition:",
                reply_markup=get_condition_keyboard(action.coin)
            )

        elif isinstance(action, Cancel):
            dialogue.cancel(owner)
            await query.edit_message_text("❌ Alert setup cancelled.")

    except StaleSelection:
        notice = EXPIRED
    except StoreError as e:
        logger.error(f"Error saving alert for {owner}: {e}")
        await query.message.reply_text("❌ Error saving alert.")
    except BotError as e:
        logger.error(f"Error handling callback '{query.data}': {e}")
        notice = "❌ Error processing request"

    await query.answer(notice)


@rate_limit(calls=COMMAND_LIMITS['normal'][0], period=COMMAND_LIMITS['normal'][1])
async def handle_text(update: Update, context: CallbackContext) -> None:
    """Takes the target price while the user is in the alert dialogue."""
    owner = _owner(update)
    dialogue = get_services(context).dialogue

    try:
        draft = dialogue.enter_price(owner, update.message.text)
    except InvalidInput:
        await update.message.reply_text("❌ Invalid price. Please enter a valid positive number.")
        return

    if draft is None:
        # Not waiting for a price: ordinary message
        return

    await update.message.reply_text(
        f"🎯 Confirm alert:\n{draft.describe()}",
        reply_markup=get_confirm_keyboard(draft)
    )


async def handle_error(update: object, context: CallbackContext) -> None:
    """Logs errors that escaped a handler; the bot keeps running."""
    logger.error(f"Unhandled error while processing update {update}", exc_info=context.error)
