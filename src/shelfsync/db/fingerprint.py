# ABOUTME: Cheap file identity from size and modification time.
# ABOUTME: Used as the sole staleness signal for cached metadata; no content hashing.

import os
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse


@dataclass(frozen=True)
class Fingerprint:
    """Size in bytes and modification time in epoch milliseconds."""

    size: int
    modified: int


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def local_path(path_or_uri: str | Path) -> Path:
    """Convert a filesystem path or ``file://`` URI to a local Path.

    URIs are percent-decoded; plain paths are returned as-is.
    """
    if isinstance(path_or_uri, Path):
        return path_or_uri
    if path_or_uri.startswith("file://"):
        return Path(unquote(urlparse(path_or_uri).path))
    return Path(path_or_uri)


def read_fingerprint(path_or_uri: str | Path) -> Fingerprint | None:
    """Stat a file and return its fingerprint.

    Args:
        path_or_uri: Path or ``file://`` URI of the file.

    Returns:
        The current Fingerprint, or None if the file does not exist.

    Raises:
        OSError: For filesystem errors other than a missing file.
    """
    try:
        st = os.stat(local_path(path_or_uri))
    except FileNotFoundError:
        return None
    return Fingerprint(size=st.st_size, modified=st.st_mtime_ns // 1_000_000)
