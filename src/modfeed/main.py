"""
modfeed
=======

A Discord bot that watches the Factorio mod portal and announces new mods
and releases to every subscribed server.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODFEED_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODFEED_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass

import discord
from dotenv import load_dotenv

from modfeed.cog import events_listener, update_notifications_cog
from modfeed.configuration.app_configuration import app_config
from modfeed.database.database import database
from modfeed.database.db_connection import db_connection
from modfeed.errors import PersistenceError
from modfeed.notifications.dispatcher import NotificationDispatcher
from modfeed.notifications.message_formatter import MessageFormatter
from modfeed.notifications.messaging_platform import DiscordMessagingPlatform
from modfeed.notifications.rate_budget import RateBudget
from modfeed.portal.portal_client import PortalClient
from modfeed.scheduler.update_cycle import UpdateCycle
from modfeed.scheduler.update_scheduler import UpdateScheduler
from modfeed.services.community_settings_service import community_settings_service
from modfeed.store.mod_store import ModStore
from modfeed.util.logger import get_logger, handle_exception

logger = get_logger("main")


@dataclass
class UpdateEngine:
    """Everything the poll cycle needs, built once per process."""
    portal: PortalClient
    store: ModStore
    cycle: UpdateCycle
    scheduler: UpdateScheduler


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Only guild events are needed: the bot sends, it never reads messages."""
    intents = discord.Intents.none()
    intents.guilds = True
    return intents


def build_update_engine(bot: discord.Bot) -> UpdateEngine:
    """Wire portal, store, dispatcher, cycle and scheduler from app_config."""
    portal_settings = app_config.portal
    settings = app_config.update_notifications

    portal = PortalClient.from_settings(portal_settings)
    store = ModStore(db_connection)
    dispatcher = NotificationDispatcher(
        DiscordMessagingPlatform(bot),
        MessageFormatter(portal_settings.base_url),
        RateBudget(settings.rate_limit_messages, settings.rate_limit_period_seconds),
        concurrency=settings.send_concurrency,
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base_seconds,
        send_timeout=settings.send_timeout_seconds,
        channel_rate_messages=settings.channel_rate_limit_messages,
        channel_rate_period=settings.channel_rate_limit_period_seconds,
    )
    cycle = UpdateCycle(
        portal,
        store,
        community_settings_service.load_subscription_index,
        dispatcher,
        diff_workers=settings.diff_workers,
        details_concurrency=portal_settings.details_concurrency,
        changelog_max_lines=settings.changelog_max_lines,
        notify_on_initial_sync=settings.notify_on_initial_sync,
        time_budget=settings.cycle_timeout_seconds,
        persist_margin=settings.persist_margin_seconds,
    )
    scheduler = UpdateScheduler(
        cycle,
        interval=settings.poll_interval_seconds,
        cycle_timeout=settings.cycle_timeout_seconds,
        shutdown_grace=settings.shutdown_grace_seconds,
    )
    return UpdateEngine(portal=portal, store=store, cycle=cycle, scheduler=scheduler)


def create_bot() -> tuple[discord.Bot, UpdateEngine]:
    """Instantiate the Discord bot, the update engine and register all cogs."""
    bot = discord.Bot(intents=build_intents())
    engine = build_update_engine(bot)

    events_listener.setup(bot, community_settings_service)
    update_notifications_cog.setup(bot, engine.scheduler)
    logger.info("All cogs loaded successfully.")
    return bot, engine


async def shutdown_runtime(bot: discord.Bot, engine: UpdateEngine) -> None:
    """Stop the scheduler first so no cycle writes after the database closes."""
    try:
        await engine.scheduler.shutdown()
    except Exception as exc:
        logger.exception("Error during scheduler shutdown: %s", exc)

    if not bot.is_closed():
        await bot.close()

    engine.portal.close()

    try:
        await database.shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database, the engine and the bot, returning an exit code."""
    token = load_environment()

    logger.info("Initializing database...")
    if not await database.initialize():
        logger.critical("Failed to initialize database.")
        return 1

    try:
        bot, engine = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await database.shutdown()
        return 1

    try:
        await engine.store.load()
    except PersistenceError as exc:
        logger.critical("Failed to load stored mods: %s", exc)
        await shutdown_runtime(bot, engine)
        return 1

    exit_code = 0
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, engine)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    logger.info("Starting modfeed…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    print(f"Exited with code: {main()}")
