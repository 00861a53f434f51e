# ABOUTME: Public API for the shelfsync storage layer.
# ABOUTME: Exports connection management, the key-value store, and the metadata cache.

from shelfsync.db.cache import ALL_BOOKS_CACHE_KEY, MetadataCache
from shelfsync.db.connection import DEFAULT_COVER_DIR, DEFAULT_DB_PATH, open_store
from shelfsync.db.fingerprint import Fingerprint, read_fingerprint
from shelfsync.db.store import KeyValueStore, StorageError

__all__ = [
    "ALL_BOOKS_CACHE_KEY",
    "DEFAULT_COVER_DIR",
    "DEFAULT_DB_PATH",
    "Fingerprint",
    "KeyValueStore",
    "MetadataCache",
    "StorageError",
    "open_store",
    "read_fingerprint",
]
