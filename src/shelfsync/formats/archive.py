# ABOUTME: Archive access strategies for EPUB containers: in-memory zip or extract-to-temp.
# ABOUTME: Picks a strategy by file size and guarantees temp extraction dirs are removed.

import io
import logging
import tempfile
import zipfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import unquote

logger = logging.getLogger(__name__)

LARGE_FILE_THRESHOLD = 50 * 1024 * 1024  # 50 MB


class ArchiveError(Exception):
    """Raised when an EPUB archive cannot be opened or extracted."""


class ArchiveStrategy(Enum):
    """How the container is read: fully in memory, or extracted to disk."""

    IN_MEMORY = "in_memory"
    EXTRACT_TO_TEMP = "extract_to_temp"


def select_strategy(
    file_size: int, threshold: int = LARGE_FILE_THRESHOLD
) -> ArchiveStrategy:
    """Choose the archive strategy for a file of the given size.

    Files up to ``threshold`` bytes are held in memory; anything larger is
    extracted to a temporary directory to bound memory use.
    """
    if file_size <= threshold:
        return ArchiveStrategy.IN_MEMORY
    return ArchiveStrategy.EXTRACT_TO_TEMP


@runtime_checkable
class EpubArchive(Protocol):
    """Read access to the entries of an opened EPUB container."""

    @property
    def strategy(self) -> ArchiveStrategy: ...

    def read_bytes(self, name: str) -> bytes | None: ...

    def names(self) -> list[str] | None: ...


def _name_candidates(name: str) -> list[str]:
    """Entry names to try for an href: as written, then percent-decoded."""
    candidates = [name]
    decoded = unquote(name)
    if decoded != name:
        candidates.append(decoded)
    return candidates


class InMemoryArchive:
    """A whole EPUB held in memory as a zip archive.

    Provides a full entry listing, which the cover resolver's
    filename scan relies on.
    """

    strategy = ArchiveStrategy.IN_MEMORY

    def __init__(self, data: bytes) -> None:
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(data))
        except zipfile.BadZipFile as exc:
            raise ArchiveError(f"Not a valid zip archive: {exc}") from exc
        self._names = self._zip.namelist()
        self._folded = {n.lower(): n for n in reversed(self._names)}

    def names(self) -> list[str]:
        return list(self._names)

    def _locate(self, name: str) -> str | None:
        for candidate in _name_candidates(name):
            if candidate in self._names:
                return candidate
            folded = self._folded.get(candidate.lower())
            if folded is not None:
                return folded
        return None

    def read_bytes(self, name: str) -> bytes | None:
        """Read an entry by name; None if missing or unreadable."""
        entry = self._locate(name)
        if entry is None:
            return None
        try:
            return self._zip.read(entry)
        except (zipfile.BadZipFile, zlib.error, OSError) as exc:
            logger.warning("Unreadable archive entry %s: %s", entry, exc)
            return None

    def close(self) -> None:
        self._zip.close()


class ExtractedArchive:
    """An EPUB unpacked into a directory and read straight off disk.

    No entry listing is offered, matching what the large-file path
    can afford. Lookups fall back to a case-folded index of the extracted
    files, like the in-memory archive.
    """

    strategy = ArchiveStrategy.EXTRACT_TO_TEMP

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()
        self._folded = {
            p.relative_to(self._root).as_posix().lower(): p
            for p in sorted(self._root.rglob("*"), reverse=True)
            if p.is_file()
        }

    @property
    def root(self) -> Path:
        return self._root

    def names(self) -> None:
        return None

    def _locate(self, name: str) -> Path | None:
        for candidate in _name_candidates(name):
            relative = candidate.lstrip("/")
            target = (self._root / relative).resolve()
            if not target.is_relative_to(self._root):
                logger.warning("Refusing entry outside extraction root: %s", name)
                return None
            if target.is_file():
                return target
            folded = self._folded.get(relative.lower())
            if folded is not None:
                return folded
        return None

    def read_bytes(self, name: str) -> bytes | None:
        """Read an extracted file by entry name; None if missing or outside the root."""
        target = self._locate(name)
        if target is None:
            return None
        try:
            return target.read_bytes()
        except OSError as exc:
            logger.warning("Unreadable extracted entry %s: %s", name, exc)
            return None


@contextmanager
def open_archive(
    path: Path,
    strategy: ArchiveStrategy,
    *,
    temp_dir: Path | None = None,
) -> Iterator[EpubArchive]:
    """Open an EPUB container with the given strategy.

    For EXTRACT_TO_TEMP the archive is unpacked into a fresh temporary
    directory that is removed when the context exits, whether the body
    succeeds or raises.

    Args:
        path: Local path of the EPUB file.
        strategy: Result of select_strategy() for this file.
        temp_dir: Parent directory for extraction (default: system temp).

    Raises:
        ArchiveError: If the file is not a readable zip archive.
    """
    if strategy is ArchiveStrategy.IN_MEMORY:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ArchiveError(f"Failed to read {path}: {exc}") from exc
        archive = InMemoryArchive(data)
        try:
            yield archive
        finally:
            archive.close()
        return

    with tempfile.TemporaryDirectory(prefix="epub_temp_", dir=temp_dir) as tmp:
        logger.debug("Extracting %s to %s", path, tmp)
        try:
            with zipfile.ZipFile(path) as zf:
                zf.extractall(tmp)
        except (zipfile.BadZipFile, zlib.error, OSError) as exc:
            raise ArchiveError(f"Failed to extract {path}: {exc}") from exc
        yield ExtractedArchive(Path(tmp))
