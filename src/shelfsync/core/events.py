# ABOUTME: Event stream for incremental library updates.
# ABOUTME: Subscribers receive BooksUpdated and ProcessingCountUpdated events; their errors are contained.

import logging
from collections.abc import Callable
from dataclasses import dataclass

from shelfsync.metadata.types import BookMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BooksUpdated:
    """A new best-effort snapshot of the library."""

    books: list[BookMetadata]


@dataclass(frozen=True)
class ProcessingCountUpdated:
    """Number of newly found files still waiting to be parsed."""

    remaining: int


LibraryEvent = BooksUpdated | ProcessingCountUpdated
Subscriber = Callable[[LibraryEvent], None]


class LibraryEvents:
    """Synchronous publish/subscribe channel for library events.

    Example:
        events = LibraryEvents()
        unsubscribe = events.subscribe(print)
        events.publish(ProcessingCountUpdated(remaining=3))
        unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        """Remove a subscriber. Unknown callbacks are ignored."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: LibraryEvent) -> None:
        """Deliver an event to every subscriber in registration order."""
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Error in library event subscriber %r", callback)

    def clear(self) -> None:
        """Drop all subscribers."""
        self._subscribers.clear()


@dataclass
class LibraryCallbacks:
    """Callback pair for consumers that prefer plain callbacks over events."""

    on_books_update: Callable[[list[BookMetadata]], None]
    on_processing_count_update: Callable[[int], None]

    def __call__(self, event: LibraryEvent) -> None:
        if isinstance(event, BooksUpdated):
            self.on_books_update(event.books)
        elif isinstance(event, ProcessingCountUpdated):
            self.on_processing_count_update(event.remaining)
