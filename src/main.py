#!/usr/bin/env python3
"""
Bot entry point.
"""
import asyncio
import sys
import os
import logging
from logging.handlers import RotatingFileHandler

# Make the modules in src importable when run as a script
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, MessageHandler, filters
from config import TELEGRAM_BOT_TOKEN, DB_PATH, PORT, HEALTH_ENABLED, KEEPALIVE_URL
from dialogue import AlertDialogue, DialogueStore
from gateway import MarketDataGateway
from handlers import (
    Services, cmd_start, cmd_coin, cmd_alert, cmd_alerts, cmd_addfav, cmd_favlist,
    cmd_clearfavlist, cmd_list, handle_callback_query, handle_text, handle_error
)
from health import keep_alive, start_health_server
from scheduler import AlertScheduler
from storage import AlertStore
from utils import close_http_session

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Rotating file log plus console output, configured from env."""
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_file = os.getenv('LOG_FILE', 'bot.log')
    max_log_size = int(os.getenv('MAX_LOG_SIZE_MB', '10')) * 1024 * 1024  # 10MB by default
    backup_count = int(os.getenv('LOG_BACKUP_COUNT', '5'))

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_log_size,
        backupCount=backup_count,
        encoding='utf-8'
    )
    console_handler = logging.StreamHandler()

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[file_handler, console_handler]
    )
    # Token appears in request URLs
    logging.getLogger('httpx').setLevel(logging.WARNING)


def build_application(services: Services) -> Application:
    """Creates the Telegram application and registers the handlers."""
    application = Application.builder().token(TELEGRAM_BOT_TOKEN).build()
    application.bot_data['services'] = services

    application.add_handler(CommandHandler(["start", "help"], cmd_start))
    application.add_handler(CommandHandler("coin", cmd_coin))
    application.add_handler(CommandHandler("alert", cmd_alert))
    application.add_handler(CommandHandler("alerts", cmd_alerts))
    application.add_handler(CommandHandler("addfav", cmd_addfav))
    application.add_handler(CommandHandler("favlist", cmd_favlist))
    application.add_handler(CommandHandler("clearfavlist", cmd_clearfavlist))
    application.add_handler(CommandHandler("list", cmd_list))
    application.add_handler(CallbackQueryHandler(handle_callback_query))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    application.add_error_handler(handle_error)
    return application


async def run_bot() -> None:
    """Runs the bot until it is stopped."""
    logger.info('Initializing bot...')

    store = AlertStore(DB_PATH)
    await store.open()

    gateway = MarketDataGateway()
    services = Services(
        gateway=gateway,
        store=store,
        dialogue=AlertDialogue(DialogueStore(), gateway, store),
    )
    application = build_application(services)

    async def notify(owner: str, text: str) -> None:
        await application.bot.send_message(chat_id=owner, text=text, parse_mode='Markdown')

    scheduler = AlertScheduler(store, gateway, notify)
    health_runner = None
    keep_alive_task = None

    await application.initialize()
    await application.start()
    try:
        scheduler.start()
        if HEALTH_ENABLED:
            health_runner = await start_health_server(store, PORT)
        if KEEPALIVE_URL:
            keep_alive_task = asyncio.create_task(keep_alive(KEEPALIVE_URL), name="keep-alive")
            logger.info(f"Keep-alive pings enabled for {KEEPALIVE_URL}")

        await application.updater.start_polling(
            allowed_updates=["message", "callback_query"],
            drop_pending_updates=False,
            timeout=10
        )
        logger.info('Bot is running...')

        # Run until interrupted
        await asyncio.Event().wait()
    finally:
        logger.info('Shutting down...')
        await scheduler.stop()
        if keep_alive_task is not None:
            keep_alive_task.cancel()
        if application.updater.running:
            await application.updater.stop()
        await application.stop()
        await application.shutdown()
        if health_runner is not None:
            await health_runner.cleanup()
        await store.close()


def main() -> None:
    """Program entry point."""
    setup_logging()

    if not TELEGRAM_BOT_TOKEN:
        logger.error("⚠️ TELEGRAM_BOT_TOKEN is not set!")
        raise ValueError("Set TELEGRAM_BOT_TOKEN")

    # Event loop policy for Windows
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def log_unhandled(loop, context):
        # Log and keep running
        logger.error(f"Unhandled error: {context.get('message')}", exc_info=context.get('exception'))

    loop.set_exception_handler(log_unhandled)
    try:
        loop.run_until_complete(run_bot())
    except KeyboardInterrupt:
        logger.info('Bot stopped by user')
    finally:
        try:
            loop.run_until_complete(close_http_session())
        except Exception as e:
            logger.error(f"Error closing HTTP session: {e}")
        loop.close()


if __name__ == "__main__":
    main()
