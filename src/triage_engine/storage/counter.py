"""Daily auto-send counters shared by concurrent senders."""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from datetime import date
from pathlib import Path
from threading import Lock
from types import TracebackType

LOGGER = logging.getLogger(__name__)


class InMemoryAutoSendCounter:
    """Process-local counter guarded by a lock."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counts: defaultdict[date, int] = defaultdict(int)

    def current(self, day: date) -> int:
        with self._lock:
            return self._counts[day]

    def reserve(self, day: date, limit: int) -> bool:
        """Claim one slot for ``day`` unless ``limit`` has been reached."""
        with self._lock:
            if self._counts[day] >= limit:
                return False
            self._counts[day] += 1
            return True

    def close(self) -> None:
        """Nothing to release for the in-memory counter."""


class SqliteAutoSendCounter:
    """Counter persisted in SQLite so separate processes share one cap."""

    def __init__(self, db_path: Path | str) -> None:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(
            path, isolation_level=None, check_same_thread=False
        )
        self._lock = Lock()
        self._apply_migrations()

    def __enter__(self) -> SqliteAutoSendCounter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def current(self, day: date) -> int:
        with self._lock:
            row = self._connection.execute(
                "SELECT sent FROM auto_send_counts WHERE day = ?",
                (day.isoformat(),),
            ).fetchone()
        return int(row[0]) if row else 0

    def reserve(self, day: date, limit: int) -> bool:
        """Increment the count for ``day`` inside an immediate transaction."""
        key = day.isoformat()
        with self._lock:
            self._connection.execute("BEGIN IMMEDIATE")
            try:
                row = self._connection.execute(
                    "SELECT sent FROM auto_send_counts WHERE day = ?", (key,)
                ).fetchone()
                sent = int(row[0]) if row else 0
                if sent >= limit:
                    self._connection.execute("ROLLBACK")
                    return False
                self._connection.execute(
                    """
                    INSERT INTO auto_send_counts (day, sent) VALUES (?, 1)
                    ON CONFLICT(day) DO UPDATE SET sent = sent + 1
                    """,
                    (key,),
                )
                self._connection.execute("COMMIT")
            except sqlite3.Error:
                self._connection.execute("ROLLBACK")
                raise
        LOGGER.debug("Reserved auto-send slot %s/%s for %s", sent + 1, limit, key)
        return True

    def close(self) -> None:
        self._connection.close()

    def _apply_migrations(self) -> None:
        self._connection.execute(
            """
            CREATE TABLE IF NOT EXISTS auto_send_counts (
                day TEXT PRIMARY KEY,
                sent INTEGER NOT NULL DEFAULT 0
            )
            """
        )


__all__ = ["InMemoryAutoSendCounter", "SqliteAutoSendCounter"]
