"""
Trading assistant Telegram bot - entry point.

Builds the python-telegram-bot Application, wires the session store, backend
client and dispatcher together, then runs polling (or a webhook when
WEBHOOK_URL is set).

Usage:
    python -m tg_bot.bot
"""

import logging
import sys

from telegram import Update
from telegram.ext import Application, ContextTypes

from tg_bot.api_client import BackendClient, BackendCredentials
from tg_bot.commands import CommandRegistry, setup_default_commands
from tg_bot.config import BotConfig, get_config
from tg_bot.dispatcher import Dispatcher
from tg_bot.error_handler import error_handler
from tg_bot.logging_utils import setup_logging
from tg_bot.session_store import SessionStore

logger = logging.getLogger("tg_bot.bot")


async def sweep_sessions(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Repeating job: drop expired sessions and log what is left."""
    store: SessionStore = context.job.data
    removed = store.sweep_expired()
    stats = store.get_statistics()
    logger.debug(f"Session sweep removed {removed}, {stats['active_sessions']} active")


def build_application(config: BotConfig) -> Application:
    """Create the application with every handler and job registered."""
    store = SessionStore(timeout_seconds=config.session_timeout_seconds)
    client = BackendClient(
        config.backend_url,
        BackendCredentials(config.backend_bot_token, config.backend_secret),
        timeout_seconds=config.backend_timeout_seconds,
    )
    registry = CommandRegistry()
    setup_default_commands(registry)
    dispatcher = Dispatcher(store, client, registry)

    async def post_init(app: Application) -> None:
        await client.connect()
        health = await client.health_check()
        if health.success:
            logger.info(f"Backend reachable at {config.backend_url}")
        else:
            logger.warning(f"Backend health check failed: {health.error}")
        await app.bot.set_my_commands(registry.to_bot_commands())

    async def post_shutdown(app: Application) -> None:
        await client.close()

    app = (
        Application.builder()
        .token(config.telegram_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )
    app.bot_data["store"] = store
    app.bot_data["client"] = client

    dispatcher.register(app)
    app.add_error_handler(error_handler)

    job_queue = app.job_queue
    if job_queue and config.session_sweep_interval_seconds > 0:
        job_queue.run_repeating(
            sweep_sessions,
            interval=config.session_sweep_interval_seconds,
            first=config.session_sweep_interval_seconds,
            data=store,
            name="session_sweep",
        )
        logger.info(f"Session sweep every {config.session_sweep_interval_seconds}s")
    else:
        logger.info("Session sweep: DISABLED")

    return app


def main():
    """Run the bot."""
    config = get_config()
    setup_logging(config.log_level, config.log_dir)

    missing = config.get_missing()
    if "TELEGRAM_BOT_TOKEN" in missing:
        logger.critical("TELEGRAM_BOT_TOKEN not set! Get a token from @BotFather on Telegram")
        sys.exit(1)
    if missing:
        logger.warning(f"Missing backend credentials: {', '.join(missing)}; backend calls will be rejected")

    # Show config status (no secrets!)
    logger.info("=" * 50)
    logger.info("TRADING ASSISTANT BOT")
    logger.info("=" * 50)
    logger.info(f"Telegram token: {config.mask_key(config.telegram_token)}")
    logger.info(f"Backend: {config.backend_url}")
    logger.info(f"Backend token: {config.mask_key(config.backend_bot_token)}")
    logger.info(f"Session timeout: {config.session_timeout_minutes} min")
    logger.info(f"Mode: {'webhook' if config.use_webhook else 'polling'}")

    app = build_application(config)

    if config.use_webhook:
        app.run_webhook(
            listen="0.0.0.0",
            port=config.port,
            webhook_url=config.webhook_url,
            secret_token=config.webhook_secret or None,
            allowed_updates=Update.ALL_TYPES,
        )
    else:
        app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
