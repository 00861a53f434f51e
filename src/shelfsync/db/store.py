# ABOUTME: JSON key-value store on top of the shelfsync SQLite database.
# ABOUTME: get() decodes values, set() reports success as a bool instead of raising.

import json
import logging
import sqlite3
import threading
from typing import Any

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the underlying store cannot be read."""


class KeyValueStore:
    """Wraps a sqlite3 connection and stores JSON-serializable values by key.

    Access is serialized with a lock so the store can be used from worker
    threads.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the decoded value stored under key, or None if absent.

        Values that are not valid JSON are logged and treated as absent.

        Raises:
            StorageError: If the database cannot be read.
        """
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read key {key}: {exc}") from exc

        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as exc:
            logger.error("Error parsing data for key %s: %s", key, exc)
            return None

    def set(self, key: str, value: Any) -> bool:
        """Store value under key. The value is stored as JSON.

        Returns:
            True on success, False if the value could not be written.
        """
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.error("Value for key %s is not JSON-serializable: %s", key, exc)
            return False

        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = strftime('%Y-%m-%dT%H:%M:%S', 'now')",
                    (key, payload),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            logger.error("Error setting data for key %s: %s", key, exc)
            return False
        return True

    def init(self, key: str, default: Any) -> bool:
        """Seed key with default unless it already holds a value."""
        if self.get(key) is not None:
            return True
        return self.set(key, default)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
