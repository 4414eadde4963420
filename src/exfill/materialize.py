"""Write pending edits into worksheet ``<c>`` elements."""

from __future__ import annotations

import logging

from lxml import etree

from .models import CellEdit

logger = logging.getLogger(__name__)

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"

# Children replaced when a literal value is written into a cell.
_PAYLOAD_TAGS = ("f", "v", "is")


def qualified_name(element: etree._Element, local_name: str) -> str:
    """Return ``local_name`` in the namespace of ``element``."""
    namespace = etree.QName(element).namespace
    return f"{{{namespace}}}{local_name}" if namespace else local_name


def _insert_payload(cell: etree._Element, local_name: str) -> etree._Element:
    """Append a payload child, keeping it ahead of any ``extLst``."""
    child = etree.SubElement(cell, qualified_name(cell, local_name))
    ext = cell.find(qualified_name(cell, "extLst"))
    if ext is not None:
        ext.addprevious(child)
    return child


def materialize(cell: etree._Element, edit: CellEdit) -> None:
    """Replace the value held by ``cell`` with ``edit``.

    Shared-string references are dropped without touching the shared string
    table, so the table may keep entries nothing refers to any more. The
    style index ``s`` is left alone.
    """
    if cell.get("t") == "s":
        logger.debug("Dropping shared string reference on %s.", cell.get("r"))
    for local_name in _PAYLOAD_TAGS:
        for child in cell.findall(qualified_name(cell, local_name)):
            if local_name == "f" and child.get("t") == "array":
                # Other cells of the range keep their last computed values.
                logger.warning(
                    "Overwriting array formula anchor at %s (ref=%s).",
                    cell.get("r"),
                    child.get("ref"),
                )
            cell.remove(child)

    if edit.type == "number":
        cell.set("t", "n")
        value = _insert_payload(cell, "v")
        value.text = edit.numeral()
        return

    cell.set("t", "inlineStr")
    inline = _insert_payload(cell, "is")
    text = etree.SubElement(inline, qualified_name(cell, "t"))
    content = edit.text()
    if content != content.strip():
        text.set(XML_SPACE, "preserve")
    text.text = content


def clear_formula_cache(cell: etree._Element) -> bool:
    """Drop the cached result of a formula cell.

    Returns:
        True when a cached value was removed.
    """
    if cell.find(qualified_name(cell, "f")) is None:
        return False
    cached = cell.findall(qualified_name(cell, "v"))
    for value in cached:
        cell.remove(value)
    return bool(cached)
