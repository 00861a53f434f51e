# ABOUTME: Converts between BookMetadata dataclasses and JSON-ready dictionaries.
# ABOUTME: Defines the persisted layout of the path -> metadata cache blob.

from typing import Any

from shelfsync.metadata.types import (
    UNKNOWN_AUTHOR,
    UNKNOWN_TITLE,
    BookMetadata,
    TocEntry,
)


def book_to_record(book: BookMetadata) -> dict[str, Any]:
    """Convert a BookMetadata instance to a JSON-serializable dict."""
    return {
        "file_path": book.file_path,
        "title": book.title,
        "author": book.author,
        "table_of_contents": [
            {"label": entry.label, "href": entry.href}
            for entry in book.table_of_contents
        ],
        "cover_image": book.cover_image,
        "file_size": book.file_size,
        "last_modified": book.last_modified,
        "last_accessed": book.last_accessed,
    }


def record_to_book(record: dict[str, Any]) -> BookMetadata:
    """Convert a stored dict back to BookMetadata.

    Missing optional fields fall back to their defaults.

    Raises:
        KeyError: If file_path is missing.
        TypeError, ValueError: If a field has the wrong shape.
    """
    toc = [
        TocEntry(label=str(item["label"]), href=str(item["href"]))
        for item in record.get("table_of_contents") or []
    ]
    return BookMetadata(
        file_path=record["file_path"],
        title=record.get("title") or UNKNOWN_TITLE,
        author=record.get("author") or UNKNOWN_AUTHOR,
        table_of_contents=toc,
        cover_image=record.get("cover_image"),
        file_size=int(record.get("file_size") or 0),
        last_modified=int(record.get("last_modified") or 0),
        last_accessed=int(record.get("last_accessed") or 0),
    )
