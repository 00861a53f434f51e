# ABOUTME: Library sync service: cache-first load plus background validation, scanning, and enrichment.
# ABOUTME: Runs blocking I/O in worker threads and reports progress through LibraryEvents.

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Iterable
from enum import Enum

from shelfsync.core.events import (
    BooksUpdated,
    LibraryCallbacks,
    LibraryEvents,
    ProcessingCountUpdated,
)
from shelfsync.core.scanner import FileScanner, PermissionDeniedError, find_files
from shelfsync.db.cache import MetadataCache
from shelfsync.formats.epub import ParseError, parse_epub
from shelfsync.metadata.types import BookMetadata, ParsedMetadata

logger = logging.getLogger(__name__)

BATCH_SIZE = 3
BATCH_DELAY = 0.1  # seconds between batches

ParseFn = Callable[[str], ParsedMetadata]


class SyncState(Enum):
    """Where the service is in a library-load session."""

    IDLE = "idle"
    LOADING_CACHE = "loading_cache"
    VALIDATING = "validating"
    SCANNING = "scanning"
    ENRICHING = "enriching"


def deduplicate_books(books: Iterable[BookMetadata]) -> list[BookMetadata]:
    """Keep one book per file path, preferring the most recently accessed.

    Ties keep the first occurrence; output follows first-seen path order.
    """
    seen: dict[str, BookMetadata] = {}
    for book in books:
        current = seen.get(book.file_path)
        if current is None or book.last_accessed > current.last_accessed:
            seen[book.file_path] = book
    return list(seen.values())


def get_and_cache_metadata(
    file_path: str, cache: MetadataCache, parse_fn: ParseFn = parse_epub
) -> BookMetadata | None:
    """Return cached metadata for a file, parsing and caching it on a miss.

    Returns None if the file cannot be parsed.
    """
    cached = cache.get_one(file_path)
    if cached is not None:
        return cached

    try:
        parsed = parse_fn(file_path)
    except ParseError as exc:
        logger.warning("Failed to parse EPUB %s: %s", file_path, exc)
        return None
    return cache.put(parsed)


class LibraryService:
    """Coordinates the local EPUB library for one application session.

    initialize() returns the cached library immediately and schedules a
    background sync on the running event loop. The sync validates cached
    entries, asks the scanner for files on disk, and parses new ones in
    small batches, publishing BooksUpdated and ProcessingCountUpdated
    events as it goes. Only one sync runs at a time; extra triggers while
    one is in flight are dropped.
    """

    def __init__(
        self,
        cache: MetadataCache,
        scanner: FileScanner,
        *,
        parse_fn: ParseFn = parse_epub,
        extension: str = "epub",
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY,
        events: LibraryEvents | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._cache = cache
        self._scanner = scanner
        self._parse_fn = parse_fn
        self._extension = extension
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._events = events or LibraryEvents()

        self._state = SyncState.IDLE
        self._is_processing = False
        self._has_loaded_initially = False
        self._seen_paths: set[str] = set()
        self._callbacks_unsubscribe: Callable[[], None] | None = None
        self._sync_task: asyncio.Task[None] | None = None
        self._validation_tasks: set[asyncio.Task[None]] = set()

    @property
    def events(self) -> LibraryEvents:
        return self._events

    @property
    def state(self) -> SyncState:
        return self._state

    def _set_state(self, state: SyncState) -> None:
        if state is not self._state:
            logger.debug("Library state %s -> %s", self._state.value, state.value)
            self._state = state

    def set_callbacks(self, callbacks: LibraryCallbacks | None) -> None:
        """Route events to a callback pair, replacing any previously set pair."""
        if self._callbacks_unsubscribe is not None:
            self._callbacks_unsubscribe()
            self._callbacks_unsubscribe = None
        if callbacks is not None:
            self._callbacks_unsubscribe = self._events.subscribe(callbacks)

    def is_currently_processing(self) -> bool:
        """Whether a background sync pass is in flight."""
        return self._is_processing

    # --- public session API ---

    async def initialize(self) -> list[BookMetadata]:
        """Return the cached library and start a background sync.

        The first call marks every cached path as seen and schedules the
        sync without waiting for it. Later calls just return a fresh
        snapshot. Never raises.
        """
        if self._has_loaded_initially:
            return await self.get_all_books()

        self._has_loaded_initially = True
        books = await self._load_cached_books_immediately()
        self._schedule_background_sync()
        return books

    async def get_all_books(self) -> list[BookMetadata]:
        """Deduplicated snapshot of the cache. Empty on failure."""
        try:
            cached = await asyncio.to_thread(self._cache.get_all)
            return deduplicate_books(cached.values())
        except Exception:
            logger.exception("Error getting all books")
            return []

    async def refresh(self) -> list[BookMetadata]:
        """Forget this session's bookkeeping and initialize again.

        An in-flight sync is not cancelled; the new sync request is
        dropped if one is still running.
        """
        self._seen_paths.clear()
        self._has_loaded_initially = False
        return await self.initialize()

    async def trigger_background_sync(self) -> None:
        """Run a background sync now and wait for it. No-op while one is in flight."""
        if self._is_processing:
            return
        await self._start_background_sync()

    async def wait_for_sync(self) -> None:
        """Wait until the scheduled sync and its validation pass have finished."""
        if self._sync_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._sync_task
        # The sync task spawns validation, so read the set only after the join
        for task in list(self._validation_tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def dispose(self) -> None:
        """Tear down the session: cancel background work and drop subscribers."""
        for task in (self._sync_task, *self._validation_tasks):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._sync_task = None
        self._validation_tasks.clear()
        self._is_processing = False
        self._set_state(SyncState.IDLE)
        self.set_callbacks(None)
        self._events.clear()

    # --- cache-first load ---

    async def _load_cached_books_immediately(self) -> list[BookMetadata]:
        self._set_state(SyncState.LOADING_CACHE)
        start = time.monotonic()
        try:
            cached = await asyncio.to_thread(self._cache.get_all)
            books = deduplicate_books(cached.values())
            self._seen_paths.update(book.file_path for book in books)
            logger.info(
                "Loaded %d cached book(s) in %.0fms",
                len(books),
                (time.monotonic() - start) * 1000,
            )
            return books
        except Exception:
            logger.exception("Error loading cached books")
            return []
        finally:
            self._set_state(SyncState.IDLE)

    # --- background sync ---

    def _schedule_background_sync(self) -> None:
        """Spawn the sync as a task; it starts at the loop's next opportunity."""
        if self._sync_task is not None and not self._sync_task.done():
            logger.debug("Background sync already scheduled")
            return
        self._sync_task = asyncio.get_running_loop().create_task(
            self._start_background_sync()
        )

    async def _start_background_sync(self) -> None:
        if self._is_processing:
            return
        self._is_processing = True
        logger.info("Starting background sync")

        try:
            cached = list((await asyncio.to_thread(self._cache.get_all)).values())

            self._set_state(SyncState.VALIDATING)
            validation = asyncio.get_running_loop().create_task(
                self._validate_books_in_background(cached)
            )
            self._validation_tasks.add(validation)
            validation.add_done_callback(self._validation_tasks.discard)

            self._set_state(SyncState.SCANNING)
            scan_start = time.monotonic()
            on_disk = await self._scan_for_files()
            logger.info(
                "File scan completed in %.0fms, found %d file(s)",
                (time.monotonic() - scan_start) * 1000,
                len(on_disk),
            )

            cached_paths = {book.file_path for book in cached}
            new_paths = [
                path
                for path in dict.fromkeys(on_disk)
                if path not in cached_paths and path not in self._seen_paths
            ]
            logger.info("Found %d new book(s) to process", len(new_paths))

            if new_paths:
                self._events.publish(ProcessingCountUpdated(remaining=len(new_paths)))
                await self._process_new_books(new_paths)
        except Exception:
            logger.exception("Error in background sync")
        finally:
            self._is_processing = False
            self._set_state(SyncState.IDLE)

    async def _scan_for_files(self) -> list[str]:
        """Ask the scanner for on-disk paths; a refused permission yields none."""
        try:
            return await asyncio.to_thread(find_files, self._scanner, self._extension)
        except PermissionDeniedError as exc:
            logger.warning("File scan skipped, permission denied: %s", exc)
            return []

    async def _validate_one(self, book: BookMetadata) -> BookMetadata | None:
        try:
            return await asyncio.to_thread(self._cache.validate, book)
        except Exception:
            logger.exception("Validation failed for %s", book.file_path)
            return book

    async def _validate_books_in_background(self, cached: list[BookMetadata]) -> None:
        """Check every cached entry against disk and publish the survivors if any were evicted."""
        try:
            results = await asyncio.gather(*(self._validate_one(book) for book in cached))
            valid = [book for book in results if book is not None]
            logger.info("%d/%d cached book(s) are still valid", len(valid), len(cached))

            if len(valid) != len(cached):
                books = await self.get_all_books()
                self._seen_paths.update(book.file_path for book in books)
                self._events.publish(BooksUpdated(books=books))
        except Exception:
            logger.exception("Error validating books")

    async def _process_one(self, file_path: str) -> BookMetadata | None:
        if file_path in self._seen_paths:
            return None
        try:
            book = await asyncio.to_thread(
                get_and_cache_metadata, file_path, self._cache, self._parse_fn
            )
        except Exception:
            logger.exception("Background processing failed for %s", file_path)
            return None
        if book is not None:
            self._seen_paths.add(file_path)
        return book

    async def _process_new_books(self, paths: list[str]) -> None:
        """Parse new files batch by batch, publishing each success as it is merged."""
        total = len(paths)
        for start in range(0, total, self._batch_size):
            self._set_state(SyncState.ENRICHING)
            batch = paths[start : start + self._batch_size]

            running = await self.get_all_books()
            results = await asyncio.gather(*(self._process_one(path) for path in batch))

            for book in results:
                if book is None:
                    continue
                running = deduplicate_books([*running, book])
                self._events.publish(BooksUpdated(books=running))

            remaining = max(0, total - (start + self._batch_size))
            self._events.publish(ProcessingCountUpdated(remaining=remaining))

            await asyncio.sleep(self._batch_delay)
