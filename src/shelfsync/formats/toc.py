# ABOUTME: Table-of-contents extraction from the NCX, with the EPUB 3 nav document as fallback.
# ABOUTME: Entries keep document order; a missing navigation file simply yields no entries.

import logging

from lxml import etree

from shelfsync.formats.archive import EpubArchive
from shelfsync.formats.opf import PackageDocument, join_href
from shelfsync.formats.xmlutil import attr, child_named, iter_named, parse_xml, text_of
from shelfsync.metadata.types import TocEntry

logger = logging.getLogger(__name__)


def parse_ncx(data: bytes | None) -> list[TocEntry]:
    """Extract (label, href) pairs from an NCX document.

    Every navPoint with both a ``navLabel/text`` and a ``content/@src``
    contributes one entry. Nested navPoints follow their parent.
    """
    root = parse_xml(data)
    if root is None:
        return []

    entries: list[TocEntry] = []
    for nav_point in iter_named(root, "navPoint"):
        label_el = child_named(nav_point, "navLabel")
        content_el = child_named(nav_point, "content")
        label = text_of(child_named(label_el, "text")) if label_el is not None else None
        src = attr(content_el, "src") if content_el is not None else None
        if label and src:
            entries.append(TocEntry(label=label, href=src))
    return entries


def _is_toc_nav(element: etree._Element) -> bool:
    return (attr(element, "type") or "").strip().lower() == "toc"


def parse_nav_document(data: bytes | None) -> list[TocEntry]:
    """Extract anchors from the ``<nav epub:type="toc">`` of an EPUB 3 nav document.

    Falls back to the first ``<nav>`` when none is typed as the TOC.
    """
    root = parse_xml(data)
    if root is None:
        return []

    navs = list(iter_named(root, "nav"))
    if not navs:
        return []
    nav = next((n for n in navs if _is_toc_nav(n)), navs[0])

    entries: list[TocEntry] = []
    for anchor in iter_named(nav, "a"):
        label = text_of(anchor)
        href = attr(anchor, "href")
        if label and href:
            entries.append(TocEntry(label=label, href=href))
    return entries


def read_table_of_contents(
    archive: EpubArchive, package: PackageDocument, opf_dir: str
) -> list[TocEntry]:
    """Read the table of contents declared by the package document.

    Hrefs are returned as written in the navigation file, relative to it.
    """
    ncx = package.ncx_item
    if ncx is not None:
        entries = parse_ncx(archive.read_bytes(join_href(opf_dir, ncx.href)))
        if entries:
            return entries
        logger.debug("NCX %s declared but yielded no entries", ncx.href)

    nav = package.nav_item
    if nav is not None:
        return parse_nav_document(archive.read_bytes(join_href(opf_dir, nav.href)))
    return []
