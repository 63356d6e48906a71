"""Decide whether Luna should answer an inbound message."""

from __future__ import annotations

import random
import re
import time
from dataclasses import dataclass, field
from typing import Callable

from lunabot.settings import TriggerSettings


@dataclass
class TriggerPolicy:
    """Pure predicate over one message.

    DMs and explicit mentions always trigger. Unless ``require_mention`` is
    set, a whole-word name keyword or a random draw below
    ``reply_probability`` also triggers.
    """

    require_mention: bool = False
    reply_probability: float = 0.0
    name_trigger: bool = True
    name_keywords: tuple[str, ...] = ("luna",)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        self._name_patterns = [
            re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)
            for keyword in self.name_keywords
            if keyword
        ]

    @classmethod
    def from_settings(cls, settings: TriggerSettings, *, rng: random.Random | None = None) -> TriggerPolicy:
        return cls(
            require_mention=settings.require_mention,
            reply_probability=settings.reply_probability,
            name_trigger=settings.name_trigger,
            name_keywords=settings.name_keywords,
            rng=rng or random.Random(),
        )

    def matches_name(self, content: str) -> bool:
        return any(pattern.search(content or "") for pattern in self._name_patterns)

    def should_respond(
        self,
        *,
        content: str,
        is_bot_author: bool = False,
        is_dm: bool = False,
        mentions_bot: bool = False,
    ) -> bool:
        if is_bot_author:
            return False
        if is_dm or mentions_bot:
            return True
        if self.require_mention:
            return False
        if self.name_trigger and self.matches_name(content):
            return True
        if self.reply_probability > 0:
            return self.rng.random() < self.reply_probability
        return False


class CooldownTracker:
    """Per-user cooldown; the only state is the last handled time per user."""

    def __init__(self, cooldown_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._last: dict[int, float] = {}

    def remaining(self, user_id: int, now: float | None = None) -> float:
        last = self._last.get(user_id)
        if last is None:
            return 0.0
        now = self._clock() if now is None else now
        return max(0.0, self.cooldown_seconds - (now - last))

    def is_cooling_down(self, user_id: int, now: float | None = None) -> bool:
        return self.remaining(user_id, now) > 0

    def mark(self, user_id: int, now: float | None = None) -> None:
        self._last[user_id] = self._clock() if now is None else now

    def try_acquire(self, user_id: int, now: float | None = None) -> bool:
        """Record a handled message unless the user is still cooling down."""
        now = self._clock() if now is None else now
        if self.is_cooling_down(user_id, now):
            return False
        self.mark(user_id, now)
        return True
