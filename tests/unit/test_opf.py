# ABOUTME: Unit tests for OPF package document parsing and archive href resolution.
# ABOUTME: Covers Dublin Core lookup, manifest queries, and tolerance of malformed producers.

from collections.abc import Callable

import pytest

from shelfsync.formats.opf import PackageDocument, dirname_of, join_href
from shelfsync.formats.xmlutil import attr, local_name, parse_xml


class TestJoinHref:
    """Tests for resolving hrefs against the OPF directory."""

    @pytest.mark.parametrize(
        ("base", "href", "expected"),
        [
            ("OEBPS/", "images/cv.jpg", "OEBPS/images/cv.jpg"),
            ("", "cover.jpg", "cover.jpg"),
            ("OEBPS/Text/", "../Images/c.png", "OEBPS/Images/c.png"),
            ("OEBPS/", "/root.jpg", "root.jpg"),
            ("OEBPS/", "chap.xhtml#sec1", "OEBPS/chap.xhtml"),
            ("OEBPS/", "./a/./b.jpg", "OEBPS/a/b.jpg"),
        ],
    )
    def test_resolves(self, base: str, href: str, expected: str) -> None:
        """Joins, normalizes, and drops fragments."""
        assert join_href(base, href) == expected

    def test_empty_href(self) -> None:
        """An href that is only a fragment resolves to nothing."""
        assert join_href("", "#top") == ""

    def test_dirname_of(self) -> None:
        """Directory part keeps its trailing slash."""
        assert dirname_of("OEBPS/content.opf") == "OEBPS/"
        assert dirname_of("content.opf") == ""


class TestXmlHelpers:
    """Tests for the tolerant lxml helpers."""

    def test_parse_empty_returns_none(self) -> None:
        """Empty input yields no document."""
        assert parse_xml(b"") is None
        assert parse_xml(None) is None

    def test_recovers_unclosed_tags(self) -> None:
        """A truncated document still yields a root."""
        root = parse_xml(b"<package><metadata><title>Broken")
        assert root is not None

    def test_local_name_strips_namespace_and_prefix(self) -> None:
        """Both Clark notation and raw prefixes are removed."""
        assert local_name("{http://purl.org/dc/elements/1.1/}title") == "title"
        assert local_name("dc:title") == "title"
        assert local_name("title") == "title"

    def test_attr_ignores_prefix(self) -> None:
        """Namespaced attributes are found by local name."""
        root = parse_xml(
            b'<svg xmlns:xlink="http://www.w3.org/1999/xlink">'
            b'<image xlink:href="a.jpg"/></svg>'
        )
        assert root is not None
        assert attr(root[0], "href") == "a.jpg"


class TestPackageDocument:
    """Tests for OPF field and manifest lookups."""

    def test_title_and_author(self, make_opf: Callable[..., str]) -> None:
        """Reads the first dc:title and dc:creator."""
        package = PackageDocument.parse(make_opf(title="Dune", author="Frank Herbert").encode())
        assert package.title == "Dune"
        assert package.author == "Frank Herbert"

    def test_blank_title_is_none(self, make_opf: Callable[..., str]) -> None:
        """Whitespace-only fields count as missing."""
        package = PackageDocument.parse(make_opf(title="   ", author=None).encode())
        assert package.title is None
        assert package.author is None

    def test_first_creator_wins(self, make_opf: Callable[..., str]) -> None:
        """Only the first of several creators is reported."""
        opf = make_opf(author="First", extra_metadata="<dc:creator>Second</dc:creator>")
        assert PackageDocument.parse(opf.encode()).author == "First"

    def test_undeclared_dc_prefix(self) -> None:
        """Producers that forget the dc namespace declaration are still read."""
        opf = b"<package><metadata><dc:title>Loose</dc:title></metadata></package>"
        assert PackageDocument.parse(opf).title == "Loose"

    def test_unparseable_document_is_empty(self) -> None:
        """Garbage behaves like an empty package."""
        package = PackageDocument.parse(b"\x00\x01 not xml")
        assert package.title is None
        assert package.manifest == []
        assert package.cover_meta_id is None

    def test_item_by_id_falls_back_to_case_insensitive(
        self, make_opf: Callable[..., str]
    ) -> None:
        """An id that differs only in case still matches."""
        opf = make_opf(manifest=[("Cover-Image", "c.jpg", "image/jpeg")])
        item = PackageDocument.parse(opf.encode()).item_by_id("cover-image")
        assert item is not None
        assert item.href == "c.jpg"

    def test_manifest_properties(self, make_opf: Callable[..., str]) -> None:
        """Space-separated properties are split into a set."""
        opf = make_opf(manifest=[("nav", "nav.xhtml", "application/xhtml+xml", "nav scripted")])
        package = PackageDocument.parse(opf.encode())
        assert package.nav_item is not None
        assert package.nav_item.properties == frozenset({"nav", "scripted"})

    def test_ncx_item(self, make_opf: Callable[..., str]) -> None:
        """The NCX is found by its media type."""
        opf = make_opf(manifest=[("toc", "toc.ncx", "application/x-dtbncx+xml")])
        package = PackageDocument.parse(opf.encode())
        assert package.ncx_item is not None
        assert package.ncx_item.href == "toc.ncx"

    def test_meta_cover_with_reversed_attributes(self, make_opf: Callable[..., str]) -> None:
        """Attribute order on the cover meta does not matter."""
        opf = make_opf(extra_metadata='<meta content="img1" name="cover"/>')
        assert PackageDocument.parse(opf.encode()).cover_meta_id == "img1"

    def test_guide_cover_href(self, make_opf: Callable[..., str]) -> None:
        """Reads the guide reference typed as cover."""
        opf = make_opf(guide='<reference type="cover" href="Text/cover.xhtml" title="Cover"/>')
        assert PackageDocument.parse(opf.encode()).guide_cover_href == "Text/cover.xhtml"
