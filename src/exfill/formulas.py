"""Keep shared formula groups intact when their anchor cell is overwritten.

A shared formula is stored once on its anchor cell (``<f t="shared" ref=..
si=..>``); every other cell of the group only carries ``<f t="shared"
si=..>``. Writing a literal into the anchor removes the only copy of the
formula, so the remaining members are first expanded into plain formulas
translated to their own position.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable
import logging

from lxml import etree
from openpyxl.formula.tokenizer import TokenizerError
from openpyxl.formula.translate import Translator

from .errors import MalformedTemplateError
from .materialize import qualified_name

logger = logging.getLogger(__name__)


def translate_formula(formula: str, origin: str, target: str) -> str:
    """Translate formula text (without ``=``) from origin to target cell."""
    try:
        translated = Translator(f"={formula}", origin=origin).translate_formula(target)
    except TokenizerError as exc:
        raise MalformedTemplateError(
            f"Cannot translate formula {formula!r} from {origin} to {target}: {exc}"
        ) from exc
    return str(translated).removeprefix("=")


def shared_anchors(formulas: Iterable[etree._Element]) -> list[etree._Element]:
    """Return the ``<f>`` elements that define a shared formula group."""
    return [
        formula
        for formula in formulas
        if formula.get("t") == "shared"
        and formula.get("ref") is not None
        and formula.get("si") is not None
        and formula.text
    ]


def release_shared_formulas(
    sheet_data: etree._Element, overwritten: Collection[str]
) -> int:
    """Expand shared groups whose anchor cell is in ``overwritten``.

    Cell references must already be explicit on every ``<c>``.

    Args:
        sheet_data: The worksheet ``sheetData`` element, modified in place.
        overwritten: Uppercase A1 references of cells about to be written.

    Returns:
        Number of member cells turned into plain formulas.
    """
    formula_tag = qualified_name(sheet_data, "f")
    masters: dict[str, tuple[str, str]] = {}
    for anchor in shared_anchors(sheet_data.iter(formula_tag)):
        ref = (anchor.getparent().get("r") or "").upper()
        if ref in overwritten:
            masters[anchor.get("si")] = (ref, anchor.text)
    if not masters:
        return 0

    expanded = 0
    for formula in sheet_data.iter(formula_tag):
        if formula.get("t") != "shared":
            continue
        master = masters.get(formula.get("si"))
        if master is None:
            continue
        origin, text = master
        target = (formula.getparent().get("r") or "").upper()
        if target == origin:
            continue
        formula.text = translate_formula(text, origin, target)
        for attribute in ("t", "si", "ref"):
            formula.attrib.pop(attribute, None)
        expanded += 1
    for si, (origin, _) in masters.items():
        logger.debug("Expanded shared formula group si=%s anchored at %s.", si, origin)
    return expanded
