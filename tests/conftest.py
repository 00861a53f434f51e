# ABOUTME: Shared pytest fixtures for shelfsync tests.
# ABOUTME: Provides EPUB files (ebooklib-built, hand-zipped, corrupt) and a temp-backed metadata cache.

import zipfile
from collections.abc import Callable, Iterator
from itertools import count
from pathlib import Path

import pytest
from ebooklib import epub

from shelfsync.db.cache import MetadataCache
from shelfsync.db.connection import open_store
from shelfsync.db.store import KeyValueStore

# Not a decodable JPEG, but parsers only look at bytes and extension
COVER_BYTES = b"\xff\xd8\xff\xe0" + b"cover-image-data" * 8

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

OPF_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<package xmlns="http://www.idpf.org/2007/opf" version="2.0" unique-identifier="id">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    {metadata}
  </metadata>
  <manifest>
    {manifest}
  </manifest>
  <spine toc="ncx"/>
  {guide}
</package>
"""


def _add_chapter(book: epub.EpubBook, title: str, file_name: str) -> epub.EpubHtml:
    chapter = epub.EpubHtml(title=title, file_name=file_name, lang="en")
    chapter.content = f"<html><body><h1>{title}</h1><p>Content.</p></body></html>".encode()
    book.add_item(chapter)
    return chapter


@pytest.fixture
def sample_epub(tmp_path: Path) -> Path:
    """Create a valid EPUB with known metadata, two chapters, and a JPEG cover."""
    book = epub.EpubBook()

    book.set_identifier("test-isbn-978-0-123456-47-2")
    book.set_title("The Name of the Rose")
    book.set_language("en")
    book.add_author("Umberto Eco")
    book.set_cover("cover.jpg", COVER_BYTES)

    chapter1 = _add_chapter(book, "Chapter 1", "chap01.xhtml")
    chapter2 = _add_chapter(book, "Chapter 2", "chap02.xhtml")

    book.toc = [
        epub.Link("chap01.xhtml", "Chapter 1", "chap01"),
        epub.Link("chap02.xhtml", "Chapter 2", "chap02"),
    ]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter1, chapter2]

    filepath = tmp_path / "name_of_the_rose.epub"
    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def minimal_epub(tmp_path: Path) -> Path:
    """Create an EPUB with only a title: no author and no cover."""
    book = epub.EpubBook()
    book.set_identifier("minimal-id")
    book.set_title("Untitled Book")
    book.set_language("en")

    chapter = _add_chapter(book, "Content", "content.xhtml")

    book.toc = [epub.Link("content.xhtml", "Content", "content")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    filepath = tmp_path / "minimal.epub"
    epub.write_epub(str(filepath), book)
    return filepath


@pytest.fixture
def corrupt_epub(tmp_path: Path) -> Path:
    """Create a corrupt file that is not a valid EPUB."""
    filepath = tmp_path / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def make_opf() -> Callable[..., str]:
    """Factory for OPF package documents.

    Manifest items are (id, href, media_type) or (id, href, media_type, properties).
    """

    def _make(
        *,
        title: str | None = "Hand Built",
        author: str | None = "A. Writer",
        manifest: list[tuple[str, ...]] | None = None,
        extra_metadata: str = "",
        guide: str = "",
    ) -> str:
        metadata = []
        if title is not None:
            metadata.append(f"<dc:title>{title}</dc:title>")
        if author is not None:
            metadata.append(f"<dc:creator>{author}</dc:creator>")
        metadata.append(extra_metadata)

        items = []
        for entry in manifest or []:
            item_id, href, media_type = entry[:3]
            props = f' properties="{entry[3]}"' if len(entry) > 3 else ""
            items.append(f'<item id="{item_id}" href="{href}" media-type="{media_type}"{props}/>')

        return OPF_TEMPLATE.format(
            metadata="\n    ".join(metadata),
            manifest="\n    ".join(items),
            guide=f"<guide>{guide}</guide>" if guide else "",
        )

    return _make


@pytest.fixture
def make_epub(tmp_path: Path) -> Callable[..., Path]:
    """Factory for hand-zipped EPUB files with full control over every entry."""

    def _make(
        name: str = "book.epub",
        *,
        opf: str | None = None,
        opf_path: str = "OEBPS/content.opf",
        files: dict[str, bytes | str] | None = None,
        container: str | None = None,
    ) -> Path:
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("mimetype", "application/epub+zip")
            if container is None:
                container = CONTAINER_XML.format(opf_path=opf_path)
            if container:
                zf.writestr("META-INF/container.xml", container)
            if opf is not None:
                zf.writestr(opf_path, opf)
            for entry, data in (files or {}).items():
                zf.writestr(entry, data)
        return path

    return _make


@pytest.fixture
def store(tmp_path: Path) -> Iterator[KeyValueStore]:
    """A key-value store backed by a temporary SQLite file."""
    kv = KeyValueStore(open_store(tmp_path / "db" / "library.db"))
    yield kv
    kv.close()


@pytest.fixture
def clock() -> Callable[[], int]:
    """A deterministic, strictly increasing millisecond clock."""
    ticks = count(1_000)
    return lambda: next(ticks)


@pytest.fixture
def cache(store: KeyValueStore, tmp_path: Path, clock: Callable[[], int]) -> MetadataCache:
    """A metadata cache writing covers under the temp directory."""
    return MetadataCache(store, tmp_path / "covers", clock=clock)
