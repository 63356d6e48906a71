"""Tests for the SQLite memory store."""

from __future__ import annotations

import sqlite3

from lunabot import memory_db


def test_init_db_creates_tables(temp_db):
    memory_db.init_db()
    with sqlite3.connect(temp_db) as conn:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"memories", "user_profiles"} <= tables


def test_recent_memories_are_capped_and_oldest_first(temp_db):
    for i in range(10):
        memory_db.add_memory(1, "Alice", f"message {i}", reply=f"reply {i}")

    records = memory_db.get_recent_memories(1, limit=6)

    assert len(records) == 6
    assert [r.content for r in records] == [f"message {i}" for i in range(4, 10)]
    assert records[-1].reply == "reply 9"


def test_recent_memories_only_for_requested_user(temp_db):
    memory_db.add_memory(1, "Alice", "alice says hi")
    memory_db.add_memory(2, "Bob", "bob says hi")

    records = memory_db.get_recent_memories(2)

    assert [r.content for r in records] == ["bob says hi"]
    assert records[0].user_name == "Bob"


def test_zero_limit_returns_nothing(temp_db):
    memory_db.add_memory(1, "Alice", "hello")
    assert memory_db.get_recent_memories(1, limit=0) == []


def test_forget_removes_only_that_user(temp_db):
    for i in range(3):
        memory_db.add_memory(1, "Alice", f"a{i}")
    memory_db.add_memory(2, "Bob", "b0")

    deleted = memory_db.forget_user(1)

    assert deleted == 3
    assert memory_db.get_recent_memories(1) == []
    assert memory_db.get_profile(1) is None
    assert [r.content for r in memory_db.get_recent_memories(2)] == ["b0"]
    assert memory_db.count_memories() == 1


def test_forget_unknown_user_is_noop(temp_db):
    assert memory_db.forget_user(42) == 0


def test_profile_tracks_latest_display_name(temp_db):
    memory_db.add_memory(1, "Alice", "first")
    memory_db.add_memory(1, "Ally", "second")

    profile = memory_db.get_profile(1)

    assert profile is not None
    assert profile.display_name == "Ally"
    assert memory_db.count_memories(1) == 2


def test_kind_and_tags_are_stored(temp_db):
    memory_db.add_memory(1, "Alice", "likes tea", kind=memory_db.KIND_LONG, mood="happy", personality="Luna")

    (record,) = memory_db.get_recent_memories(1)

    assert record.kind == "long"
    assert record.mood == "happy"
    assert record.personality == "Luna"
    assert record.reply is None
