from __future__ import annotations

import os
import sqlite3
import sys
from datetime import datetime, timezone
from typing import Any

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


_initialized: set[str] = set()


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (a bind mount that was created
    before the file existed, for example), the journal lives inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "rsr.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    path = _resolve_db_path()
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path not in _initialized:
        _create_schema(conn)
        _initialized.add(path)
    return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS events (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          ts TEXT NOT NULL,
          level TEXT NOT NULL,
          path TEXT,
          message TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
        """
    )


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        _create_schema(conn)


def log_event(level: str, message: str, path: str | None = None) -> None:
    """Append an event to the journal.

    A journal that cannot be opened or written never fails the caller; the
    event goes to stderr instead.
    """
    try:
        with connect() as conn:
            conn.execute(
                "INSERT INTO events (ts, level, path, message) VALUES (?, ?, ?, ?)",
                (utc_now(), level.upper(), path, message),
            )
    except (sqlite3.Error, OSError) as e:
        print(f"rsr: event journal unavailable ({e}): {level.upper()} {message}", file=sys.stderr)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
