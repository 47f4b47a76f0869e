"""Shared SQLite plumbing for the durable stores.

A short-lived connection is opened per operation and the blocking call
runs in a worker thread, so concurrent coroutines never share a
connection object.  SQLite's own locking makes single statements atomic.
"""

from __future__ import annotations

import asyncio
import contextlib
import sqlite3
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import TypeVar

T = TypeVar("T")

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC text so lexical order equals chronological order."""
    return value.astimezone(UTC).strftime(_TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    return datetime.strptime(value, _TIMESTAMP_FORMAT).replace(tzinfo=UTC)


class SqliteDatabase:
    """A SQLite database file plus its schema."""

    def __init__(self, path: str | Path, schema: str, *, busy_timeout: float = 5.0) -> None:
        self._path = str(path)
        self._schema = schema
        self._busy_timeout = busy_timeout
        self._initialized = False
        self._schema_lock = threading.Lock()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, timeout=self._busy_timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        if self._initialized:
            return
        with self._schema_lock:
            if self._initialized:
                return
            with contextlib.closing(self._connect()) as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(self._schema)
                conn.commit()
            self._initialized = True

    def run_sync(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        """Run *fn* inside a transaction on a fresh connection."""
        self._ensure_schema()
        with contextlib.closing(self._connect()) as conn, conn:
            return fn(conn)

    async def run(self, fn: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self.run_sync, fn)
