"""
Discord AutoMod Bot
===================

Runs the rule-based auto-moderation engine against a Discord bot: guild
messages and member joins are evaluated against each guild's rules, and
messages that pass the rules can optionally be reviewed by an AI
classifier.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. AUTOMOD_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("AUTOMOD_HOME"):
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

from automod.ai.content_moderator import AIContentModerator
from automod.ai.openai_classifier import OpenAIContentClassifier
from automod.configuration.app_configuration import AppConfig, app_config
from automod.database.database import database
from automod.datatypes.analysis_datatypes import AIModerationOptions
from automod.enforcement.discord_backend import DiscordEnforcementBackend
from automod.enforcement.discord_notifier import DiscordAuditNotifier
from automod.listener import automod_listener
from automod.moderation.action_executor import ActionExecutor
from automod.moderation.rule_engine import RuleEngine
from automod.moderation.trigger_evaluators import RegexCache
from automod.repositories.rule_repository import SqliteRuleRepository
from automod.store.rule_store import RuleStore
from automod.util.logger import get_logger, handle_exception
from automod.util.sliding_window import JoinVelocityTracker, MessageRateTracker

logger = get_logger("main")


@dataclass(slots=True)
class Runtime:
    """Everything started by :func:`async_main`, kept together for shutdown."""
    bot: discord.Bot
    store: RuleStore
    engine: RuleEngine


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises:
        SystemExit: If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for guild, member and message content events."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def build_ai_moderator(config: AppConfig) -> tuple[AIContentModerator | None, AIModerationOptions]:
    settings = config.ai_settings
    options = AIModerationOptions(
        confidence_threshold=settings.confidence_threshold,
        auto_delete=settings.auto_delete,
        send_educational_message=settings.send_educational_message,
        warn_on_violation=settings.warn_on_violation,
    )
    if not settings.enabled:
        logger.info("AI moderation disabled in configuration.")
        return None, options
    if not settings.api_key and not settings.base_url:
        logger.warning("AI moderation enabled but no API key or base URL configured; continuing without it.")
        return None, options

    moderator = AIContentModerator(
        OpenAIContentClassifier.from_settings(settings),
        confidence_threshold=settings.confidence_threshold,
        cache_ttl_seconds=settings.cache_ttl_seconds,
        request_timeout_seconds=settings.request_timeout_seconds,
        min_content_length=settings.min_content_length,
    )
    return moderator, options


async def build_runtime(config: AppConfig) -> Runtime:
    """Create the store, engine and bot, and register the automod cog."""
    store = RuleStore(
        SqliteRuleRepository(database.connection),
        persist_debounce_seconds=config.persist_debounce_seconds,
    )
    await store.initialize()

    bot = discord.Bot(intents=build_intents())
    history = database.moderation_history
    backend = DiscordEnforcementBackend(bot, history)
    join_tracker = JoinVelocityTracker(config.join_velocity_window_seconds)
    rate_tracker = MessageRateTracker(config.message_rate_window_seconds)

    executor = ActionExecutor(
        backend,
        history,
        audit_sink=database.audit_log,
        notifier=DiscordAuditNotifier(bot, store),
        notification_timeout=config.notification_timeout_seconds,
    )
    engine = RuleEngine(
        store,
        executor,
        history,
        join_counter=join_tracker,
        regex_cache=RegexCache(config.regex_cache_size),
    )

    ai_moderator, ai_options = build_ai_moderator(config)
    automod_listener.setup(
        bot,
        engine=engine,
        rate_tracker=rate_tracker,
        join_tracker=join_tracker,
        backend=backend,
        ai_moderator=ai_moderator,
        ai_options=ai_options,
    )
    logger.info("Automod runtime ready with %d rule(s).", len(store.list_all()))
    return Runtime(bot=bot, store=store, engine=engine)


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(runtime: Runtime | None) -> None:
    """Close the bot, flush pending rule changes and close the database."""
    if runtime is not None:
        if not runtime.bot.is_closed():
            try:
                await runtime.bot.close()
            except Exception as exc:
                logger.exception("Error while closing Discord bot: %s", exc)

        try:
            await runtime.store.shutdown()
        except Exception as exc:
            logger.exception("Error during rule store shutdown: %s", exc)

    try:
        await database.shutdown()
    except Exception as exc:
        logger.exception("Error during database shutdown: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the database, store and bot, returning an exit code."""
    token = load_environment()

    logger.info("Initializing database...")
    if not await database.initialize(app_config.database_path):
        logger.critical("Failed to initialize database at %s", app_config.database_path)
        return 1

    runtime: Runtime | None = None
    exit_code = 0
    try:
        runtime = await build_runtime(app_config)
        await start_bot(runtime.bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    logger.info("Starting Discord AutoMod Bot…")
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
    sys.exit(main())
