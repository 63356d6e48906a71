import pytest
import discord
from discord.ext import commands

from lunabot.cogs.general import General
from conftest import FakeCtx


@pytest.mark.asyncio
async def test_ping():
    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix="!", intents=intents)
    cog = General(bot)
    ctx = FakeCtx()
    await cog.ping.callback(cog, ctx)
    assert ctx.sent == ["Pong!"]


@pytest.mark.asyncio
async def test_help_mentions_memory_commands():
    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix="!", intents=intents)
    cog = General(bot, bot_name="Luna")
    ctx = FakeCtx()
    await cog.help_cmd.callback(cog, ctx)
    (text,) = ctx.sent
    assert "!remember" in text and "!forget" in text
    assert len(text) <= 2000
