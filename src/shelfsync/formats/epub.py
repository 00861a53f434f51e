# ABOUTME: EPUB metadata extraction straight from the container, OPF, and NCX.
# ABOUTME: Tolerant of producer quirks; only a missing container or package document is fatal.

import base64
import logging
import posixpath
from pathlib import Path

from shelfsync.db.fingerprint import Fingerprint, local_path, read_fingerprint
from shelfsync.formats.archive import (
    LARGE_FILE_THRESHOLD,
    ArchiveError,
    EpubArchive,
    open_archive,
    select_strategy,
)
from shelfsync.formats.cover import resolve_cover
from shelfsync.formats.opf import PackageDocument
from shelfsync.formats.toc import read_table_of_contents
from shelfsync.formats.xmlutil import attr, iter_named, parse_xml
from shelfsync.metadata.types import UNKNOWN_AUTHOR, UNKNOWN_TITLE, ParsedMetadata

logger = logging.getLogger(__name__)

CONTAINER_PATH = "META-INF/container.xml"

# Base64 inflates by ~1.37x; covers past a 2 MB raw budget are dropped
MAX_COVER_DATA_LENGTH = int(2 * 1024 * 1024 * 1.37)

_COVER_MIME_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
}


class ParseError(Exception):
    """Raised when an EPUB file cannot be opened or lacks its package descriptors."""


def cover_mime_type(cover_path: str) -> str:
    """MIME type for a cover, inferred from its extension (JPEG by default)."""
    ext = posixpath.splitext(cover_path)[1].lower()
    return _COVER_MIME_TYPES.get(ext, "image/jpeg")


def find_opf_path(archive: EpubArchive) -> str:
    """Read container.xml and return the package document path it declares.

    Raises:
        ParseError: If container.xml is absent or declares no rootfile.
    """
    root = parse_xml(archive.read_bytes(CONTAINER_PATH))
    if root is not None:
        for rootfile in iter_named(root, "rootfile"):
            full_path = (attr(rootfile, "full-path") or "").strip()
            if full_path:
                return full_path.lstrip("/")
    raise ParseError("container.xml missing or malformed")


def _encode_cover(
    archive: EpubArchive, cover_path: str, max_length: int
) -> str | None:
    """Read a cover image and wrap it as a data URI, or None if unusable."""
    data = archive.read_bytes(cover_path)
    if not data:
        logger.debug("Cover %s not found in archive", cover_path)
        return None

    encoded = base64.b64encode(data).decode("ascii")
    if len(encoded) >= max_length:
        logger.info(
            "Skipping oversized cover %s (%d encoded bytes)", cover_path, len(encoded)
        )
        return None
    return f"data:{cover_mime_type(cover_path)};base64,{encoded}"


def _parse_archive(
    archive: EpubArchive,
    file_path: str,
    fingerprint: Fingerprint,
    max_cover_length: int,
) -> ParsedMetadata:
    """Extract metadata from an opened container."""
    opf_path = find_opf_path(archive)
    opf_dir = opf_path[: opf_path.rfind("/") + 1]

    opf_data = archive.read_bytes(opf_path)
    if opf_data is None:
        raise ParseError(f"OPF package document not found: {opf_path}")
    package = PackageDocument.parse(opf_data)
    if package.root is None:
        logger.warning("Malformed OPF in %s; using default metadata", file_path)

    table_of_contents = read_table_of_contents(archive, package, opf_dir)

    cover_path = resolve_cover(package, opf_dir, archive)
    cover_data_uri = None
    if cover_path:
        cover_data_uri = _encode_cover(archive, cover_path, max_cover_length)

    return ParsedMetadata(
        file_path=file_path,
        title=package.title or UNKNOWN_TITLE,
        author=package.author or UNKNOWN_AUTHOR,
        table_of_contents=table_of_contents,
        cover_data_uri=cover_data_uri,
        file_size=fingerprint.size,
        last_modified=fingerprint.modified,
    )


def parse_epub(
    file_path: str | Path,
    *,
    large_file_threshold: int = LARGE_FILE_THRESHOLD,
    max_cover_length: int = MAX_COVER_DATA_LENGTH,
    temp_dir: Path | None = None,
) -> ParsedMetadata:
    """Extract title, author, table of contents, and cover from an EPUB file.

    Files up to ``large_file_threshold`` bytes are parsed in memory; larger
    ones are extracted to a temporary directory that is removed before
    this function returns.

    Args:
        file_path: Path or ``file://`` URI of the EPUB. Kept verbatim as the
            ``file_path`` of the result.
        large_file_threshold: Size in bytes above which the file is extracted to disk.
        max_cover_length: Encoded cover length at which the cover is dropped.
        temp_dir: Parent directory for large-file extraction.

    Returns:
        ParsedMetadata with the live file's size and modification time.

    Raises:
        ParseError: If the file is missing, not a zip archive, or lacks a
            resolvable container descriptor or package document.
    """
    key = str(file_path)
    path = local_path(file_path)

    try:
        fingerprint = read_fingerprint(path)
    except OSError as exc:
        raise ParseError(f"Failed to stat EPUB: {key}: {exc}") from exc
    if fingerprint is None or fingerprint.size == 0:
        raise ParseError(f"File not found: {key}")

    strategy = select_strategy(fingerprint.size, large_file_threshold)
    logger.debug("Parsing %s (%d bytes, %s)", key, fingerprint.size, strategy.value)

    try:
        with open_archive(path, strategy, temp_dir=temp_dir) as archive:
            return _parse_archive(archive, key, fingerprint, max_cover_length)
    except ArchiveError as exc:
        raise ParseError(f"Failed to read EPUB: {key}: {exc}") from exc
