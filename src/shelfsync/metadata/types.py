# ABOUTME: Core metadata data structures for locally scanned EPUB files.
# ABOUTME: ParsedMetadata leaves the parser; BookMetadata is what the cache persists.

from dataclasses import dataclass, field

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"


@dataclass(frozen=True)
class TocEntry:
    """One table-of-contents entry, in navigation document order."""

    label: str
    href: str


@dataclass
class ParsedMetadata:
    """Metadata extracted from an EPUB, before it is committed to the cache.

    The cover travels as an embedded ``data:`` URI so the parser never has to
    touch the cover cache directory.
    """

    file_path: str
    title: str = UNKNOWN_TITLE
    author: str = UNKNOWN_AUTHOR
    table_of_contents: list[TocEntry] = field(default_factory=list)
    cover_data_uri: str | None = None
    file_size: int = 0
    last_modified: int = 0

    @property
    def has_cover(self) -> bool:
        """Whether an embedded cover image was extracted."""
        return bool(self.cover_data_uri)


@dataclass
class BookMetadata:
    """A cached book: extracted metadata plus the filesystem fingerprint.

    ``file_path`` is the cache key. ``cover_image`` points at a cover file
    owned exclusively by this entry. ``last_accessed`` only breaks ties when
    deduplicating; it never drives eviction.
    """

    file_path: str
    title: str = UNKNOWN_TITLE
    author: str = UNKNOWN_AUTHOR
    table_of_contents: list[TocEntry] = field(default_factory=list)
    cover_image: str | None = None
    file_size: int = 0
    last_modified: int = 0
    last_accessed: int = 0

    @property
    def has_cover(self) -> bool:
        """Whether a cover file is attached to this entry."""
        return self.cover_image is not None
