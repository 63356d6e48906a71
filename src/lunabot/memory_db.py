# memory_db.py
"""SQLite-backed conversation memory.

One row per handled message (optionally paired with the generated reply),
plus a small profile table keyed by Discord user id.
"""
from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_DB = Path(__file__).resolve().with_name("memory.db")

KIND_SHORT = "short"
KIND_LONG = "long"


@dataclass(frozen=True)
class MemoryRecord:
    id: int
    user_id: int
    user_name: str
    kind: str
    content: str
    reply: str | None
    mood: str | None
    personality: str | None
    created_at: str


@dataclass(frozen=True)
class UserProfile:
    user_id: int
    display_name: str
    last_seen: str


def db_path() -> Path:
    """Return the configured database path (``LUNA_DB_PATH`` or the default)."""
    return Path(os.getenv("LUNA_DB_PATH", str(DEFAULT_DB))).expanduser()


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(db_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db() -> None:
    """Create required tables if they don't exist."""
    path = db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with _connect() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS user_profiles (
                user_id INTEGER PRIMARY KEY,
                display_name TEXT NOT NULL,
                last_seen TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS memories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES user_profiles(user_id) ON DELETE CASCADE,
                user_name TEXT,
                kind TEXT NOT NULL DEFAULT 'short',
                content TEXT NOT NULL,
                reply TEXT,
                mood TEXT,
                personality TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_memories_user_time ON memories(user_id, created_at)"
        )
        conn.commit()


def _touch_profile(conn: sqlite3.Connection, user_id: int, display_name: str, seen_at: str) -> None:
    conn.execute(
        """
        INSERT INTO user_profiles (user_id, display_name, last_seen) VALUES (?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            display_name = excluded.display_name,
            last_seen = excluded.last_seen
        """,
        (user_id, display_name, seen_at),
    )


def add_memory(
    user_id: int,
    user_name: str,
    content: str,
    *,
    reply: str | None = None,
    kind: str = KIND_SHORT,
    mood: str | None = None,
    personality: str | None = None,
) -> int:
    """Store a memory for ``user_id`` and refresh the user's profile.

    Returns the new row id.
    """
    init_db()
    created_at = _now()
    with _connect() as conn:
        _touch_profile(conn, user_id, user_name, created_at)
        cur = conn.execute(
            """
            INSERT INTO memories (user_id, user_name, kind, content, reply, mood, personality, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (user_id, user_name, kind, content, reply, mood, personality, created_at),
        )
        conn.commit()
        return cur.lastrowid


def get_recent_memories(user_id: int, limit: int = 6) -> list[MemoryRecord]:
    """Return at most ``limit`` of the user's latest memories, oldest first."""
    if limit <= 0:
        return []
    init_db()
    with _connect() as conn:
        rows = conn.execute(
            """
            SELECT id, user_id, user_name, kind, content, reply, mood, personality, created_at
            FROM memories
            WHERE user_id = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (user_id, limit),
        ).fetchall()
    records = [MemoryRecord(**dict(row)) for row in rows]
    records.reverse()
    return records


def forget_user(user_id: int) -> int:
    """Delete every memory (and the profile) for ``user_id``.

    Returns the number of memory rows removed.
    """
    init_db()
    with _connect() as conn:
        cur = conn.execute("DELETE FROM memories WHERE user_id = ?", (user_id,))
        deleted = cur.rowcount
        conn.execute("DELETE FROM user_profiles WHERE user_id = ?", (user_id,))
        conn.commit()
        return deleted


def get_profile(user_id: int) -> UserProfile | None:
    init_db()
    with _connect() as conn:
        row = conn.execute(
            "SELECT user_id, display_name, last_seen FROM user_profiles WHERE user_id = ?",
            (user_id,),
        ).fetchone()
    return UserProfile(**dict(row)) if row else None


def count_memories(user_id: int | None = None) -> int:
    init_db()
    with _connect() as conn:
        if user_id is None:
            row = conn.execute("SELECT COUNT(*) FROM memories").fetchone()
        else:
            row = conn.execute("SELECT COUNT(*) FROM memories WHERE user_id = ?", (user_id,)).fetchone()
    return int(row[0])
