# ABOUTME: Metadata package for extracted and cached EPUB metadata.
# ABOUTME: Exports the data structures shared by the parser, cache, and library service.

from shelfsync.metadata.types import (
    UNKNOWN_AUTHOR,
    UNKNOWN_TITLE,
    BookMetadata,
    ParsedMetadata,
    TocEntry,
)

__all__ = [
    "UNKNOWN_AUTHOR",
    "UNKNOWN_TITLE",
    "BookMetadata",
    "ParsedMetadata",
    "TocEntry",
]
