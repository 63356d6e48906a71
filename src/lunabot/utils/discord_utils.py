"""Discord utility functions."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import discord

MAX_MESSAGE_LEN = 2000

_MENTION_RE = re.compile(r"<@!?(\d+)>")


def get_display_name(user: discord.User | discord.Member) -> str:
    """Get user's display name with proper fallback hierarchy.

    Priority: server nickname > global display name > username
    """
    if getattr(user, "nick", None):
        return user.nick
    if getattr(user, "global_name", None):
        return user.global_name
    return user.name


def strip_mentions(content: str, user_id: int | None = None) -> str:
    """Remove mentions of ``user_id`` (or every user mention when None)."""
    if not content:
        return ""

    def _replace(match: re.Match[str]) -> str:
        if user_id is None or int(match.group(1)) == user_id:
            return ""
        return match.group(0)

    return re.sub(r"\s{2,}", " ", _MENTION_RE.sub(_replace, content)).strip()


def split_message(text: str, limit: int = MAX_MESSAGE_LEN) -> list[str]:
    """Split ``text`` into chunks of at most ``limit`` characters, on line breaks where possible."""
    if not text:
        return []
    chunks: list[str] = []
    current = ""
    for line in text.splitlines():
        line = line.rstrip()
        if len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            for i in range(0, len(line), limit):
                chunks.append(line[i : i + limit])
            continue
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current:
        chunks.append(current)
    return [chunk for chunk in chunks if chunk.strip()]
