"""
ASC Discord Bot
===============

A prefix-command Discord bot for moderation (bans, kicks, case logging),
guild setup, giveaways, a starboard and points/levels.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. ASCBOT_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("ASCBOT_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from ascbot.bot.cogs import events_listener, message_listener
from ascbot.bot.services import BotServices, build_services
from ascbot.configuration.app_configuration import app_config
from ascbot.configuration.guild_config import GuildConfigRegistry
from ascbot.database.database import Database
from ascbot.util.logger import get_logger, handle_exception


logger = get_logger("main")


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
    """Intents for guild, member, message, message content and reaction events."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.reactions = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, services: BotServices) -> None:
    events_listener.setup(discord_bot_instance, services)
    message_listener.setup(discord_bot_instance, services)
    logger.info("All cogs loaded successfully.")


async def start_bot(bot: discord.Bot, token: str) -> None:
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot, services: BotServices | None, database: Database) -> None:
    """Stop the bot, pending giveaway timers and the database, in that order."""
    if not bot.is_closed():
        await bot.close()

    if services is not None:
        try:
            await services.shutdown()
        except Exception as exc:
            logger.exception("Error during services shutdown: %s", exc)

    await database.shutdown()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap configuration, database and bot, returning an exit code."""
    token = load_environment()

    database = Database(app_config.database_path)
    logger.info("Initializing database...")
    if not await database.initialize():
        logger.critical("Failed to initialize database at %s", app_config.database_path)
        return 1

    guild_configs = GuildConfigRegistry(app_config.guild_config_path)
    try:
        guild_configs.load()
    except Exception as exc:
        logger.critical("Failed to load guild configuration: %s", exc)
        await database.shutdown()
        return 1

    bot = discord.Bot(intents=build_intents())
    services = None
    exit_code = 0
    try:
        services = build_services(bot, app_config, guild_configs, database.connections)
        load_cogs(bot, services)
        await start_bot(bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot, services, database)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting ASC Discord Bot…")
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
    sys.exit(main())
