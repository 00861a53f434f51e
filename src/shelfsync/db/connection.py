# ABOUTME: SQLite connection management for the shelfsync metadata store.
# ABOUTME: Opens or creates the database file and applies the schema on first use.

import sqlite3
from pathlib import Path

from shelfsync.db.schema import SCHEMA_V1

DEFAULT_DATA_DIR = Path.home() / ".shelfsync"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "library.db"
DEFAULT_COVER_DIR = DEFAULT_DATA_DIR / "covers"


def _schema_exists(conn: sqlite3.Connection) -> bool:
    """Check if the schema has already been applied."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
    )
    return cursor.fetchone() is not None


def open_store(path: Path | None = None) -> sqlite3.Connection:
    """Open or create the shelfsync database.

    Creates the database file and parent directories if they don't exist.
    The connection may be shared with worker threads; callers serialize
    access (see KeyValueStore).

    Args:
        path: Path to the database file. Defaults to ~/.shelfsync/library.db.

    Returns:
        A configured sqlite3.Connection.
    """
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")

    if not _schema_exists(conn):
        conn.executescript(SCHEMA_V1)

    return conn
