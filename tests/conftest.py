"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_db(temp_dir, monkeypatch):
    """Point the memory store at a fresh database file."""
    db_file = temp_dir / "memory.db"
    monkeypatch.setenv("LUNA_DB_PATH", str(db_file))
    yield str(db_file)


class FakeTyping:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeChannel:
    def __init__(self, channel_id: int = 123456789, channel_type=discord.ChannelType.text):
        self.id = channel_id
        self.type = channel_type
        self.sent: list[str] = []

    async def send(self, content: str):
        self.sent.append(content)

    def typing(self):
        return FakeTyping()


class FakeAuthor:
    def __init__(self, user_id: int = 111222333, name: str = "TestUser", *, bot: bool = False):
        self.id = user_id
        self.name = name
        self.nick = None
        self.global_name = None
        self.bot = bot


class FakeMessage:
    def __init__(
        self,
        content: str,
        *,
        author: FakeAuthor | None = None,
        channel: FakeChannel | None = None,
        mentions: list | None = None,
        guild: object | None = object(),
        message_id: int = 987654321,
    ):
        self.id = message_id
        self.content = content
        self.author = author or FakeAuthor()
        self.channel = channel or FakeChannel()
        self.mentions = mentions or []
        self.guild = guild
        self.replies: list[str] = []

    async def reply(self, content: str):
        self.replies.append(content)


class FakeCtx:
    def __init__(self, author: FakeAuthor | None = None):
        self.author = author or FakeAuthor()
        self.sent: list[str] = []

    async def send(self, content: str):
        self.sent.append(content)


@pytest.fixture
def mock_bot():
    """Create a mock Discord bot."""
    bot = MagicMock()
    bot.user = MagicMock()
    bot.user.id = 999888777
    bot.user.name = "Luna"
    bot.get_context = AsyncMock(return_value=SimpleNamespace(valid=False))
    return bot
