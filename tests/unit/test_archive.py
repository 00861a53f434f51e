# ABOUTME: Unit tests for archive strategy selection and the two archive implementations.
# ABOUTME: Verifies the size threshold, entry lookup quirks, and temp-dir cleanup.

import io
import zipfile
from pathlib import Path

import pytest

from shelfsync.formats.archive import (
    LARGE_FILE_THRESHOLD,
    ArchiveError,
    ArchiveStrategy,
    EpubArchive,
    ExtractedArchive,
    InMemoryArchive,
    open_archive,
    select_strategy,
)


def _zip_bytes(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


class TestSelectStrategy:
    """Tests for the large-file strategy selector."""

    def test_default_threshold_is_50_mib(self) -> None:
        """The default cutoff is 50 MiB."""
        assert LARGE_FILE_THRESHOLD == 50 * 1024 * 1024

    def test_at_threshold_stays_in_memory(self) -> None:
        """A file exactly at the threshold is read in memory."""
        assert select_strategy(LARGE_FILE_THRESHOLD) is ArchiveStrategy.IN_MEMORY

    def test_above_threshold_extracts(self) -> None:
        """One byte over the threshold switches to extraction."""
        assert select_strategy(LARGE_FILE_THRESHOLD + 1) is ArchiveStrategy.EXTRACT_TO_TEMP

    def test_custom_threshold(self) -> None:
        """The threshold is a tuning parameter."""
        assert select_strategy(11, threshold=10) is ArchiveStrategy.EXTRACT_TO_TEMP
        assert select_strategy(10, threshold=10) is ArchiveStrategy.IN_MEMORY


class TestInMemoryArchive:
    """Tests for zip access held in memory."""

    def test_rejects_non_zip(self) -> None:
        """Bytes that are not a zip raise ArchiveError."""
        with pytest.raises(ArchiveError):
            InMemoryArchive(b"not a zip")

    def test_reads_entry_and_lists_names(self) -> None:
        """Entries are readable and the listing is complete."""
        archive = InMemoryArchive(_zip_bytes({"a/b.txt": b"hello", "c.txt": b"x"}))
        assert archive.read_bytes("a/b.txt") == b"hello"
        assert archive.names() == ["a/b.txt", "c.txt"]
        assert isinstance(archive, EpubArchive)

    def test_missing_entry_is_none(self) -> None:
        """Looking up an absent entry returns None."""
        archive = InMemoryArchive(_zip_bytes({"a.txt": b"x"}))
        assert archive.read_bytes("nope.txt") is None

    def test_case_insensitive_lookup(self) -> None:
        """Hrefs whose case differs from the entry still resolve."""
        archive = InMemoryArchive(_zip_bytes({"OEBPS/Images/Cover.JPG": b"img"}))
        assert archive.read_bytes("OEBPS/images/cover.jpg") == b"img"

    def test_percent_encoded_lookup(self) -> None:
        """Percent-encoded hrefs match the decoded entry name."""
        archive = InMemoryArchive(_zip_bytes({"OEBPS/my cover.jpg": b"img"}))
        assert archive.read_bytes("OEBPS/my%20cover.jpg") == b"img"


class TestOpenArchive:
    """Tests for opening containers with either strategy."""

    def test_in_memory(self, tmp_path: Path) -> None:
        """The in-memory strategy yields a listable archive."""
        path = tmp_path / "a.epub"
        path.write_bytes(_zip_bytes({"x.txt": b"1"}))
        with open_archive(path, ArchiveStrategy.IN_MEMORY) as archive:
            assert archive.strategy is ArchiveStrategy.IN_MEMORY
            assert archive.read_bytes("x.txt") == b"1"

    def test_extract_removes_temp_dir(self, tmp_path: Path) -> None:
        """The extraction directory is gone once the context exits."""
        path = tmp_path / "a.epub"
        path.write_bytes(_zip_bytes({"OEBPS/x.txt": b"1"}))
        temp_parent = tmp_path / "tmp"
        temp_parent.mkdir()

        with open_archive(path, ArchiveStrategy.EXTRACT_TO_TEMP, temp_dir=temp_parent) as archive:
            assert archive.strategy is ArchiveStrategy.EXTRACT_TO_TEMP
            assert archive.names() is None
            assert archive.read_bytes("OEBPS/x.txt") == b"1"
            assert len(list(temp_parent.iterdir())) == 1

        assert list(temp_parent.iterdir()) == []

    def test_extract_removes_temp_dir_on_error(self, tmp_path: Path) -> None:
        """The extraction directory is removed even when the body raises."""
        path = tmp_path / "a.epub"
        path.write_bytes(_zip_bytes({"x.txt": b"1"}))
        temp_parent = tmp_path / "tmp"
        temp_parent.mkdir()

        with pytest.raises(RuntimeError):
            with open_archive(path, ArchiveStrategy.EXTRACT_TO_TEMP, temp_dir=temp_parent):
                raise RuntimeError("parse blew up")

        assert list(temp_parent.iterdir()) == []

    def test_extract_bad_zip(self, tmp_path: Path) -> None:
        """A corrupt file raises ArchiveError and leaves nothing behind."""
        path = tmp_path / "bad.epub"
        path.write_bytes(b"garbage")
        temp_parent = tmp_path / "tmp"
        temp_parent.mkdir()

        with pytest.raises(ArchiveError):
            with open_archive(path, ArchiveStrategy.EXTRACT_TO_TEMP, temp_dir=temp_parent):
                pass

        assert list(temp_parent.iterdir()) == []


class TestExtractedArchive:
    """Tests for reading extracted entries off disk."""

    def test_refuses_paths_outside_root(self, tmp_path: Path) -> None:
        """Entries may not escape the extraction directory."""
        root = tmp_path / "root"
        root.mkdir()
        (tmp_path / "secret.txt").write_text("no")
        archive = ExtractedArchive(root)
        assert archive.read_bytes("../secret.txt") is None

    def test_missing_file_is_none(self, tmp_path: Path) -> None:
        """An absent entry reads as None."""
        assert ExtractedArchive(tmp_path).read_bytes("missing.jpg") is None

    def test_case_insensitive_lookup(self, tmp_path: Path) -> None:
        """Hrefs whose case differs from the extracted file still resolve."""
        (tmp_path / "OEBPS" / "Images").mkdir(parents=True)
        (tmp_path / "OEBPS" / "Images" / "Cover.JPG").write_bytes(b"img")
        archive = ExtractedArchive(tmp_path)
        assert archive.read_bytes("oebps/images/cover.jpg") == b"img"

    def test_lookup_matches_in_memory_archive(self, tmp_path: Path) -> None:
        """Both strategies resolve the same mismatched-case name."""
        path = tmp_path / "book.epub"
        path.write_bytes(_zip_bytes({"OEBPS/Images/Cover.JPG": b"img"}))

        results = []
        for strategy in ArchiveStrategy:
            with open_archive(path, strategy, temp_dir=tmp_path) as archive:
                results.append(archive.read_bytes("OEBPS/images/cover.jpg"))

        assert results == [b"img", b"img"]
