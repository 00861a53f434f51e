# ABOUTME: Prioritized heuristic chain that locates an EPUB's cover image.
# ABOUTME: Covers the standard declarations plus the quirks of non-standard producers.

import logging
import re

from shelfsync.formats.archive import EpubArchive
from shelfsync.formats.opf import PackageDocument, dirname_of, join_href
from shelfsync.formats.xmlutil import attr, local_name, parse_xml

logger = logging.getLogger(__name__)

# Entry-name scan used only when a full archive listing is available
_COVER_NAME_RE = re.compile(r"(cover|front|title)[^/]*\.(jpg|jpeg|png|gif)$", re.IGNORECASE)


def _from_meta_cover(package: PackageDocument, opf_dir: str) -> str | None:
    cover_id = package.cover_meta_id
    if not cover_id:
        return None
    item = package.item_by_id(cover_id)
    return join_href(opf_dir, item.href) if item else None


def _from_cover_image_property(package: PackageDocument, opf_dir: str) -> str | None:
    for item in package.manifest:
        if "cover-image" in item.properties:
            return join_href(opf_dir, item.href)
    return None


def _from_cover_id(package: PackageDocument, opf_dir: str) -> str | None:
    item = package.item_by_id("cover")
    return join_href(opf_dir, item.href) if item else None


def _from_embedded_image(package: PackageDocument, opf_dir: str) -> str | None:
    href = package.embedded_image_href
    return join_href(opf_dir, href) if href else None


def _first_image_in_document(data: bytes | None) -> str | None:
    """First ``<img src>`` or ``<image xlink:href>`` of an (X)HTML document."""
    root = parse_xml(data)
    if root is None:
        return None
    for element in root.iter():
        name = local_name(element.tag).lower()
        if name == "img":
            src = attr(element, "src")
        elif name == "image":
            src = attr(element, "href")
        else:
            continue
        if src:
            return src
    return None


def _from_guide_page(package: PackageDocument, opf_dir: str, archive: EpubArchive) -> str | None:
    """Follow the guide's cover page and take the first image it shows.

    The image is resolved against the page's own directory. Any failure
    here only means this step found nothing.
    """
    href = package.guide_cover_href
    if not href:
        return None
    page_path = join_href(opf_dir, href)
    try:
        image_href = _first_image_in_document(archive.read_bytes(page_path))
    except Exception as exc:
        logger.debug("Cover page lookup failed for %s: %s", page_path, exc)
        return None
    if not image_href:
        return None
    return join_href(dirname_of(page_path), image_href)


def _from_loose_cover_name(package: PackageDocument, opf_dir: str) -> str | None:
    for item in package.manifest:
        if "cover" in item.id.lower() or "cover" in item.href.lower():
            return join_href(opf_dir, item.href)
    return None


def _from_archive_listing(archive: EpubArchive) -> str | None:
    names = archive.names()
    if names is None:
        return None
    for name in names:
        if name.lower().startswith("meta-inf"):
            continue
        if _COVER_NAME_RE.search(name):
            return name
    return None


def _from_first_image(package: PackageDocument, opf_dir: str) -> str | None:
    for item in package.manifest:
        if item.is_image:
            return join_href(opf_dir, item.href)
    return None


def resolve_cover(
    package: PackageDocument, opf_dir: str, archive: EpubArchive
) -> str | None:
    """Find the archive path of the cover image.

    Checks, in order, first match wins:

    1. ``<meta name="cover">`` pointing at a manifest id
    2. a manifest item with the ``cover-image`` property
    3. a manifest item with ``id="cover"``
    4. an ``<image xlink:href>`` inside the OPF
    5. the first image on the guide's cover page
    6. a manifest item whose id or href mentions "cover"
    7. an archive entry named like a cover (only when the archive is listable)
    8. the first image in the manifest

    Args:
        package: The parsed OPF document.
        opf_dir: Directory of the OPF inside the archive ("" or ending in "/").
        archive: The opened container, for cover-page reads and listings.

    Returns:
        The archive path of the cover, or None when nothing matched.
    """
    steps = (
        lambda: _from_meta_cover(package, opf_dir),
        lambda: _from_cover_image_property(package, opf_dir),
        lambda: _from_cover_id(package, opf_dir),
        lambda: _from_embedded_image(package, opf_dir),
        lambda: _from_guide_page(package, opf_dir, archive),
        lambda: _from_loose_cover_name(package, opf_dir),
        lambda: _from_archive_listing(archive),
        lambda: _from_first_image(package, opf_dir),
    )
    for step in steps:
        path = step()
        if path:
            return path
    return None
