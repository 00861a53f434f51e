# ABOUTME: OPF package document model: Dublin Core fields, manifest, guide, and cover hints.
# ABOUTME: Built on the tolerant lxml helpers so malformed producers degrade to defaults.

import posixpath
from dataclasses import dataclass, field

from lxml import etree

from shelfsync.formats.xmlutil import (
    attr,
    iter_named,
    namespace_of,
    parse_xml,
    text_of,
)

DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"


def join_href(base_dir: str, href: str) -> str:
    """Resolve an href against an archive directory.

    Fragments are dropped, a leading ``/`` makes the href archive-absolute,
    and ``..`` segments are collapsed. ``base_dir`` is either empty or ends
    with ``/``.
    """
    href = href.split("#", 1)[0].strip()
    if href.startswith("/"):
        joined = href.lstrip("/")
    else:
        joined = base_dir + href
    if not joined:
        return ""
    normalized = posixpath.normpath(joined)
    return "" if normalized == "." else normalized


def dirname_of(entry: str) -> str:
    """Directory part of an archive entry, including the trailing ``/``."""
    return entry[: entry.rfind("/") + 1]


@dataclass(frozen=True)
class ManifestItem:
    """One resource listed in the OPF manifest."""

    id: str
    href: str
    media_type: str = ""
    properties: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_image(self) -> bool:
        return self.media_type.startswith("image/")


def _is_dublin_core(element: etree._Element) -> bool:
    return namespace_of(element) in (DC_NAMESPACE, "dc")


class PackageDocument:
    """Lookup helpers over a parsed OPF document.

    An unparseable document behaves like an empty one: every field is
    absent and the manifest is empty.
    """

    def __init__(self, root: etree._Element | None) -> None:
        self._root = root
        self._manifest = self._read_manifest() if root is not None else []

    @classmethod
    def parse(cls, data: bytes | None) -> "PackageDocument":
        return cls(parse_xml(data))

    @property
    def root(self) -> etree._Element | None:
        return self._root

    def _dublin_core(self, name: str) -> str | None:
        if self._root is None:
            return None
        for element in iter_named(self._root, name):
            if _is_dublin_core(element):
                return text_of(element)
        return None

    @property
    def title(self) -> str | None:
        """Text of the first dc:title, or None if missing or blank."""
        return self._dublin_core("title")

    @property
    def author(self) -> str | None:
        """Text of the first dc:creator, or None if missing or blank."""
        return self._dublin_core("creator")

    def _read_manifest(self) -> list[ManifestItem]:
        items = []
        for element in iter_named(self._root, "item"):
            href = attr(element, "href")
            if not href:
                continue
            items.append(
                ManifestItem(
                    id=attr(element, "id") or "",
                    href=href,
                    media_type=(attr(element, "media-type") or "").strip().lower(),
                    properties=frozenset((attr(element, "properties") or "").split()),
                )
            )
        return items

    @property
    def manifest(self) -> list[ManifestItem]:
        return list(self._manifest)

    def item_by_id(self, item_id: str) -> ManifestItem | None:
        """Find a manifest item by id; exact match first, then case-insensitive."""
        for item in self._manifest:
            if item.id == item_id:
                return item
        folded = item_id.casefold()
        for item in self._manifest:
            if item.id.casefold() == folded:
                return item
        return None

    @property
    def ncx_item(self) -> ManifestItem | None:
        """The manifest item holding the legacy NCX table of contents."""
        for item in self._manifest:
            if item.media_type == NCX_MEDIA_TYPE:
                return item
        return None

    @property
    def nav_item(self) -> ManifestItem | None:
        """The EPUB 3 navigation document, if declared."""
        for item in self._manifest:
            if "nav" in item.properties:
                return item
        return None

    @property
    def cover_meta_id(self) -> str | None:
        """The id named by ``<meta name="cover" content="...">``."""
        if self._root is None:
            return None
        for element in iter_named(self._root, "meta"):
            if (attr(element, "name") or "").strip().lower() == "cover":
                content = (attr(element, "content") or "").strip()
                if content:
                    return content
        return None

    @property
    def guide_cover_href(self) -> str | None:
        """Href of the guide reference with ``type="cover"``."""
        if self._root is None:
            return None
        for element in iter_named(self._root, "reference"):
            if (attr(element, "type") or "").strip().lower() == "cover":
                href = attr(element, "href")
                if href:
                    return href
        return None

    @property
    def embedded_image_href(self) -> str | None:
        """Href of an ``<image xlink:href>`` element some producers put in the OPF."""
        if self._root is None:
            return None
        for element in iter_named(self._root, "image"):
            href = attr(element, "href")
            if href:
                return href
        return None
