"""Tests for the bot launcher."""

from __future__ import annotations

from types import SimpleNamespace

from lunabot.__main__ import _dynamic_prefix, create_bot


def test_mention_and_bang_prefixes():
    bot = SimpleNamespace(user=SimpleNamespace(id=42))
    prefixes = _dynamic_prefix(bot, None)
    assert "<@42> " in prefixes
    assert "!" in prefixes


def test_create_bot_uses_dynamic_prefix():
    bot = create_bot(SimpleNamespace(privacy=True))
    assert bot.command_prefix is _dynamic_prefix
    assert bot.case_insensitive
