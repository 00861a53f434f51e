# ABOUTME: Tolerant XML helpers for EPUB descriptors parsed with lxml.
# ABOUTME: Matches elements and attributes by local name so namespace quirks don't matter.

import logging
from collections.abc import Iterator

from lxml import etree

logger = logging.getLogger(__name__)

_PARSER = etree.XMLParser(
    recover=True,
    resolve_entities=False,
    no_network=True,
    remove_comments=True,
    huge_tree=True,
)


def parse_xml(data: bytes | None) -> etree._Element | None:
    """Parse XML bytes, recovering from producer errors where possible.

    Returns None when the input is empty or nothing could be recovered.
    """
    if not data:
        return None
    try:
        return etree.fromstring(data, parser=_PARSER)
    except (etree.XMLSyntaxError, ValueError) as exc:
        logger.debug("Unparseable XML document: %s", exc)
        return None


def local_name(name: object) -> str:
    """Strip a ``{namespace}`` or ``prefix:`` qualifier from a tag or attribute name.

    Recovering parsers keep undeclared prefixes in the raw name, so both
    forms are handled. Non-string tags (comments, PIs) yield "".
    """
    if not isinstance(name, str):
        return ""
    if name.startswith("{"):
        name = name.rpartition("}")[2]
    return name.rpartition(":")[2]


def namespace_of(element: etree._Element) -> str:
    """Return the namespace URI of an element, or the raw prefix if undeclared."""
    tag = element.tag
    if not isinstance(tag, str):
        return ""
    if tag.startswith("{"):
        return tag[1:].partition("}")[0]
    return tag.partition(":")[0] if ":" in tag else ""


def iter_named(root: etree._Element, name: str) -> Iterator[etree._Element]:
    """Yield descendants of root (inclusive) with the given local name, in document order."""
    for element in root.iter():
        if local_name(element.tag) == name:
            yield element


def child_named(element: etree._Element, name: str) -> etree._Element | None:
    """Return the first direct child with the given local name, or None."""
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


def attr(element: etree._Element, name: str) -> str | None:
    """Look up an attribute by local name, ignoring its namespace or prefix."""
    value = element.get(name)
    if value is not None:
        return value
    for key, val in element.attrib.items():
        if local_name(key) == name:
            return val
    return None


def text_of(element: etree._Element | None) -> str | None:
    """Concatenated, stripped text content of an element; None when blank."""
    if element is None:
        return None
    text = "".join(element.itertext()).strip()
    return text or None
