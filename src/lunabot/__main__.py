# python -m lunabot
import asyncio
import logging
import os
import sys
import time

import discord
from discord.ext import commands
from dotenv import load_dotenv

from lunabot import memory_db
from lunabot.settings import BotSettings, ConfigError, load_settings
from lunabot.status_server import StatusServer

load_dotenv()

logger = logging.getLogger("lunabot")
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

EXTENSIONS = ("lunabot.cogs.general", "lunabot.cogs.luna_chat")


def _dynamic_prefix(bot: commands.Bot, message: discord.Message):
    """Accept both the mention prefix and "!" everywhere."""
    return commands.when_mentioned_or("!")(bot, message)


def create_bot(settings: BotSettings) -> commands.Bot:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.dm_messages = True

    bot = commands.Bot(command_prefix=_dynamic_prefix, intents=intents, case_insensitive=True, help_command=None)

    @bot.event
    async def on_ready():
        logger.info("Bot is ready. Logged in as %s (ID: %s)", bot.user, bot.user.id)
        logger.info("Loaded cogs: %s", list(bot.cogs.keys()))

    @bot.event
    async def on_message(message):
        if message.author.bot:
            return
        if not settings.privacy:
            logger.debug("on_message: %s: %s", message.author, message.content[:120])
        await bot.process_commands(message)

    return bot


def _current_model(bot: commands.Bot):
    cog = bot.get_cog("LunaChat")
    return cog.completion.current_model if cog is not None else None


async def main(settings: BotSettings) -> None:
    bot = create_bot(settings)
    status = StatusServer(
        bot,
        bot_name=settings.bot_name,
        host=settings.status_host,
        port=settings.status_port,
        model_getter=lambda: _current_model(bot),
    )
    async with bot:
        for name in EXTENSIONS:
            # Avoid double-loading across crash/retry loops
            if name not in bot.extensions:
                await bot.load_extension(name)
        if settings.status_port:
            await status.start()
        try:
            logger.info("starting bot")
            await bot.start(settings.discord_token)
        finally:
            await status.stop()


def run() -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(1)

    memory_db.init_db()

    # Retry on transient connect errors (e.g., gateway timeouts)
    while True:
        try:
            asyncio.run(main(settings))
            break
        except discord.LoginFailure:
            logger.error("Discord rejected the bot token; check DISCORD_TOKEN")
            sys.exit(1)
        except KeyboardInterrupt:
            break
        except Exception as e:  # noqa: BLE001
            logger.exception("Bot crashed during startup/connect; retrying in 5s: %s", e)
            time.sleep(5)


if __name__ == "__main__":
    run()
