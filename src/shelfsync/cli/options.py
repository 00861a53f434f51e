# ABOUTME: Shared Click options and helpers for shelfsync CLI commands.
# ABOUTME: Provides --db and --cover-dir plus a helper that opens the metadata cache.

from pathlib import Path

import click

from shelfsync.db.cache import ALL_BOOKS_CACHE_KEY, MetadataCache
from shelfsync.db.connection import DEFAULT_COVER_DIR, DEFAULT_DB_PATH, open_store
from shelfsync.db.store import KeyValueStore

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    envvar="SHELFSYNC_DB",
    help=f"Path to metadata database (default: {DEFAULT_DB_PATH})",
)

cover_dir_option = click.option(
    "--cover-dir",
    "cover_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    envvar="SHELFSYNC_COVER_DIR",
    help=f"Directory for cached cover images (default: {DEFAULT_COVER_DIR})",
)


def open_cache(db_path: Path | None, cover_dir: Path | None) -> tuple[KeyValueStore, MetadataCache]:
    """Open the store and wrap it in a MetadataCache. Caller closes the store."""
    store = KeyValueStore(open_store(db_path or DEFAULT_DB_PATH))
    store.init(ALL_BOOKS_CACHE_KEY, {})
    return store, MetadataCache(store, cover_dir or DEFAULT_COVER_DIR)
