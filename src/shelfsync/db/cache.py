# ABOUTME: Persistent path -> metadata cache validated against the live filesystem.
# ABOUTME: Owns one cover image file per entry and evicts entries whose file changed or vanished.

import base64
import binascii
import hashlib
import logging
import re
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from shelfsync.db.fingerprint import now_ms, read_fingerprint
from shelfsync.db.mapping import book_to_record, record_to_book
from shelfsync.db.store import KeyValueStore, StorageError
from shelfsync.metadata.types import BookMetadata, ParsedMetadata

logger = logging.getLogger(__name__)

ALL_BOOKS_CACHE_KEY = "all_books_cache"

_UNSAFE_FILENAME_CHARS = re.compile(r"[:/\\.]")
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?;base64,(?P<data>.*)$", re.DOTALL)
_COVER_EXTENSIONS = {
    "image/png": ".png",
    "image/gif": ".gif",
    "image/svg+xml": ".svg",
}


def cover_filename(file_path: str, mime_type: str | None = None) -> str:
    """Deterministic cover file name for a source path.

    Path separators, colons, and dots are replaced so the name is flat.
    Flattening alone can collide, so a digest of the original path is
    appended to keep the name unique per source path.
    """
    ext = _COVER_EXTENSIONS.get(mime_type or "", ".jpg")
    digest = hashlib.sha256(file_path.encode("utf-8")).hexdigest()[:16]
    return f"{_UNSAFE_FILENAME_CHARS.sub('_', file_path)}_{digest}{ext}"


def _unlink_cover(cover: str | None) -> None:
    """Delete an owned cover file, ignoring one that is already gone."""
    if not cover:
        return
    try:
        Path(cover).unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not delete cover %s: %s", cover, exc)


class MetadataCache:
    """Best-effort metadata cache keyed by file path.

    The whole mapping lives in one JSON blob of the key-value store. Every
    read-modify-write runs under a single lock, so operations on the same
    path never interleave. Storage failures are logged and never raised.
    """

    def __init__(
        self,
        store: KeyValueStore,
        cover_dir: Path,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._cover_dir = cover_dir
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def cover_dir(self) -> Path:
        return self._cover_dir

    # --- raw blob access ---

    def _load(self) -> dict[str, dict[str, Any]]:
        """Read the raw mapping. Raises StorageError on read failure."""
        raw = self._store.get(ALL_BOOKS_CACHE_KEY)
        if not isinstance(raw, dict):
            return {}
        return raw

    def _save(self, books: dict[str, dict[str, Any]]) -> bool:
        saved = self._store.set(ALL_BOOKS_CACHE_KEY, books)
        if not saved:
            logger.warning("Failed to persist metadata cache")
        return saved

    def _evict(self, books: dict[str, dict[str, Any]], file_path: str, cover: str | None) -> None:
        books.pop(file_path, None)
        self._save(books)
        _unlink_cover(cover)

    # --- public API ---

    def get_all(self) -> dict[str, BookMetadata]:
        """Return every cached entry keyed by file path. Empty on storage failure."""
        try:
            with self._lock:
                raw = self._load()
        except StorageError as exc:
            logger.error("Error getting all cached books: %s", exc)
            return {}

        books: dict[str, BookMetadata] = {}
        for path, record in raw.items():
            try:
                books[path] = record_to_book(record)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed cache entry %s: %s", path, exc)
        return books

    def _check(self, books: dict[str, dict[str, Any]], book: BookMetadata) -> BookMetadata | None:
        """Validate book against the live file, evicting it when stale.

        Must be called with the lock held. Returns the restamped entry, or
        None if it was evicted.
        """
        fingerprint = read_fingerprint(book.file_path)
        if fingerprint is None:
            logger.info("Evicting %s: file no longer exists", book.file_path)
            self._evict(books, book.file_path, book.cover_image)
            return None

        if fingerprint.size != book.file_size or fingerprint.modified != book.last_modified:
            logger.info("Evicting %s: file changed on disk", book.file_path)
            self._evict(books, book.file_path, book.cover_image)
            return None

        book.last_accessed = self._clock()
        books[book.file_path] = book_to_record(book)
        self._save(books)
        return book

    def get_one(self, file_path: str) -> BookMetadata | None:
        """Look up and validate one entry.

        Returns None on a miss, on storage failure, or when the file is
        missing or changed (the entry and its cover are then deleted).
        If the file itself cannot be inspected, the cached entry is
        returned unvalidated.
        """
        with self._lock:
            try:
                books = self._load()
            except StorageError as exc:
                logger.error("Error getting cached metadata for %s: %s", file_path, exc)
                return None

            record = books.get(file_path)
            if record is None:
                return None
            try:
                cached = record_to_book(record)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Dropping malformed cache entry %s: %s", file_path, exc)
                self._evict(books, file_path, None)
                return None

            try:
                return self._check(books, cached)
            except OSError as exc:
                logger.error("File validation error for %s: %s", file_path, exc)
                return cached

    def validate(self, book: BookMetadata) -> BookMetadata | None:
        """Validate an already-loaded entry against the live file.

        Same outcome as get_one() without re-reading the entry first. An
        entry that was removed from the cache in the meantime is reported
        as gone rather than written back. On storage or filesystem errors
        the entry is returned unchanged.
        """
        with self._lock:
            try:
                books = self._load()
                if book.file_path not in books:
                    return None
                return self._check(books, book)
            except (StorageError, OSError) as exc:
                logger.error("Error validating cache for %s: %s", book.file_path, exc)
                return book

    def _write_cover(self, parsed: ParsedMetadata) -> str | None:
        """Persist the parsed data-URI cover to the cover directory."""
        if not parsed.cover_data_uri:
            return None

        match = _DATA_URI_RE.match(parsed.cover_data_uri)
        if match is None:
            logger.warning("Ignoring malformed cover data URI for %s", parsed.file_path)
            return None

        try:
            data = base64.b64decode(match.group("data"), validate=True)
            self._cover_dir.mkdir(parents=True, exist_ok=True)
            cover = self._cover_dir / cover_filename(parsed.file_path, match.group("mime"))
            cover.write_bytes(data)
        except (binascii.Error, OSError) as exc:
            logger.error("Error saving cover image for %s: %s", parsed.file_path, exc)
            return None
        return str(cover)

    def put(self, parsed: ParsedMetadata) -> BookMetadata:
        """Store freshly parsed metadata, replacing any entry for the same path.

        The cover is written to an owned file only once the mapping has been
        read, and removed again if the entry cannot be saved. A previous
        cover file that is no longer referenced is deleted.
        """
        with self._lock:
            try:
                books = self._load()
            except StorageError as exc:
                logger.error("Error caching metadata for %s: %s", parsed.file_path, exc)
                books = None

            cover = self._write_cover(parsed) if books is not None else None
            book = BookMetadata(
                file_path=parsed.file_path,
                title=parsed.title,
                author=parsed.author,
                table_of_contents=list(parsed.table_of_contents),
                cover_image=cover,
                file_size=parsed.file_size,
                last_modified=parsed.last_modified,
                last_accessed=self._clock(),
            )

            if books is None:
                return book

            previous = books.get(parsed.file_path)
            old_cover = previous.get("cover_image") if isinstance(previous, dict) else None
            books[parsed.file_path] = book_to_record(book)
            if not self._save(books):
                # The previous entry still owns a cover at the same name
                if cover and cover != old_cover:
                    _unlink_cover(cover)
                book.cover_image = None
                return book

            if old_cover and old_cover != cover:
                _unlink_cover(old_cover)
            return book

    def remove(self, file_path: str) -> None:
        """Delete an entry and its cover file. No-op if the entry is absent."""
        with self._lock:
            try:
                books = self._load()
            except StorageError as exc:
                logger.error("Error removing cached book %s: %s", file_path, exc)
                return

            record = books.get(file_path)
            if record is None:
                return
            cover = record.get("cover_image") if isinstance(record, dict) else None
            self._evict(books, file_path, cover)
