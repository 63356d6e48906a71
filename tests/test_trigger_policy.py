"""Tests for the trigger policy and cooldown tracker."""

from __future__ import annotations

import random

from lunabot.cogs.trigger_policy import CooldownTracker, TriggerPolicy
from lunabot.settings import TriggerSettings


class FixedRandom(random.Random):
    def __init__(self, value: float):
        super().__init__()
        self.value = value

    def random(self) -> float:
        return self.value


def test_bot_authors_never_trigger():
    policy = TriggerPolicy()
    assert not policy.should_respond(content="luna?", is_bot_author=True, mentions_bot=True)


def test_mentions_and_dms_always_trigger():
    policy = TriggerPolicy(require_mention=True, name_trigger=False)
    assert policy.should_respond(content="hey", mentions_bot=True)
    assert policy.should_respond(content="hey", is_dm=True)


def test_require_mention_blocks_other_triggers():
    policy = TriggerPolicy(require_mention=True, reply_probability=1.0, rng=FixedRandom(0.0))
    assert not policy.should_respond(content="luna are you there")


def test_name_keyword_is_whole_word_and_case_insensitive():
    policy = TriggerPolicy(name_keywords=("luna",))
    assert policy.should_respond(content="Good night, LUNA!")
    assert not policy.should_respond(content="that was lunatic")


def test_name_trigger_can_be_disabled():
    policy = TriggerPolicy(name_trigger=False)
    assert not policy.should_respond(content="luna hi")


def test_probability_uses_uniform_draw():
    assert TriggerPolicy(reply_probability=0.25, rng=FixedRandom(0.1)).should_respond(content="random chatter")
    assert not TriggerPolicy(reply_probability=0.25, rng=FixedRandom(0.9)).should_respond(content="random chatter")
    assert not TriggerPolicy(reply_probability=0.0, rng=FixedRandom(0.0)).should_respond(content="random chatter")


def test_from_settings():
    settings = TriggerSettings(require_mention=True, reply_probability=0.5, name_keywords=("moon",))
    policy = TriggerPolicy.from_settings(settings)
    assert policy.require_mention
    assert policy.reply_probability == 0.5
    assert policy.matches_name("hello moon")


def test_cooldown_suppresses_within_window():
    now = [100.0]
    tracker = CooldownTracker(5.0, clock=lambda: now[0])

    assert tracker.try_acquire(1)
    now[0] = 103.0
    assert not tracker.try_acquire(1)
    assert tracker.remaining(1) == 2.0
    assert tracker.try_acquire(2)

    now[0] = 105.0
    assert tracker.try_acquire(1)


def test_rejected_attempt_does_not_extend_cooldown():
    now = [0.0]
    tracker = CooldownTracker(5.0, clock=lambda: now[0])
    tracker.try_acquire(1)
    now[0] = 4.0
    assert not tracker.try_acquire(1)
    now[0] = 5.5
    assert tracker.try_acquire(1)


def test_zero_cooldown_never_blocks():
    tracker = CooldownTracker(0.0, clock=lambda: 1.0)
    assert tracker.try_acquire(1)
    assert tracker.try_acquire(1)
