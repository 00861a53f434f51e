# ABOUTME: File-scanner collaborator: permission handling and extension search.
# ABOUTME: DirectoryScanner walks local directory trees to stand in for a platform file index.

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


class PermissionDeniedError(Exception):
    """Raised when storage access is refused by the file scanner."""


@dataclass(frozen=True)
class PermissionResult:
    """Outcome of a permission request."""

    granted: bool
    message: str | None = None


@runtime_checkable
class FileScanner(Protocol):
    """Protocol for platform file search over shared storage."""

    def has_permission(self) -> bool: ...

    def request_permission(self) -> PermissionResult: ...

    def search(self, extension: str) -> list[str]: ...


def _normalize_extension(extension: str) -> str:
    """Lowercase an extension and give it a leading dot."""
    ext = extension.lower()
    return ext if ext.startswith(".") else f".{ext}"


class DirectoryScanner:
    """Finds files by extension under a set of root directories.

    A root counts as accessible when it exists and is readable; permission
    cannot be granted at runtime, so request_permission() only re-checks.
    """

    def __init__(self, roots: Iterable[Path]) -> None:
        self._roots = [Path(root) for root in roots]

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def _accessible(self, root: Path) -> bool:
        return root.is_dir() and os.access(root, os.R_OK | os.X_OK)

    def has_permission(self) -> bool:
        return bool(self._roots) and all(self._accessible(root) for root in self._roots)

    def request_permission(self) -> PermissionResult:
        denied = [str(root) for root in self._roots if not self._accessible(root)]
        if not self._roots:
            return PermissionResult(granted=False, message="No directories to scan")
        if denied:
            return PermissionResult(
                granted=False, message=f"Cannot read: {', '.join(denied)}"
            )
        return PermissionResult(granted=True)

    def search(self, extension: str) -> list[str]:
        """Return absolute paths of files with the extension, sorted, without duplicates.

        Raises:
            PermissionDeniedError: If any root is not readable.
        """
        if not self.has_permission():
            raise PermissionDeniedError("Storage access not granted")

        ext = _normalize_extension(extension)
        found: set[str] = set()
        for root in self._roots:
            for path in root.rglob("*"):
                if path.suffix.lower() == ext and path.is_file():
                    found.add(str(path.resolve()))
        return sorted(found)


def find_files(scanner: FileScanner, extension: str) -> list[str]:
    """Search for files, asking for storage permission first if needed.

    Args:
        scanner: The platform file scanner.
        extension: Extension to search for, with or without the dot.

    Returns:
        Absolute paths reported by the scanner, in scanner order.

    Raises:
        PermissionDeniedError: If permission is missing and the request is refused.
    """
    if not scanner.has_permission():
        result = scanner.request_permission()
        logger.info("Storage permission request: %s", result)
        if not result.granted:
            raise PermissionDeniedError(result.message or "Storage access not granted")

    paths = scanner.search(extension.lstrip("."))
    logger.debug("Scanner found %d .%s file(s)", len(paths), extension.lstrip("."))
    return list(paths)
