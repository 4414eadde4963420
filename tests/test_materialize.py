from __future__ import annotations

from lxml import etree

from exfill.materialize import XML_SPACE, clear_formula_cache, materialize
from exfill.models import CellEdit

NS_MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"


def _cell(inner: str, attrs: str = 'r="B2"') -> etree._Element:
    return etree.fromstring(f'<c xmlns="{NS_MAIN}" {attrs}>{inner}</c>')


def _children(cell: etree._Element) -> list[str]:
    return [etree.QName(child).localname for child in cell]


def test_number_drops_shared_string_reference() -> None:
    cell = _cell("<v>3</v>", 'r="B2" s="4" t="s"')
    materialize(cell, CellEdit(value=500, type="number"))
    assert cell.get("t") == "n"
    assert cell.get("s") == "4"
    assert _children(cell) == ["v"]
    assert cell[0].text == "500"


def test_string_becomes_inline() -> None:
    cell = _cell("<v>3</v>", 'r="B2" t="s"')
    materialize(cell, CellEdit(value="1/10", type="string"))
    assert cell.get("t") == "inlineStr"
    assert _children(cell) == ["is"]
    text = cell.find(f"{{{NS_MAIN}}}is/{{{NS_MAIN}}}t")
    assert text is not None
    assert text.text == "1/10"


def test_existing_inline_string_is_replaced() -> None:
    cell = _cell("<is><t>old</t></is>", 'r="B2" t="inlineStr"')
    materialize(cell, CellEdit(value="new", type="string"))
    assert _children(cell) == ["is"]
    assert cell.findtext(f"{{{NS_MAIN}}}is/{{{NS_MAIN}}}t") == "new"

    materialize(cell, CellEdit(value=7, type="number"))
    assert _children(cell) == ["v"]
    assert cell.get("t") == "n"


def test_formula_is_replaced_by_literal() -> None:
    cell = _cell("<f>SUM(A1:A3)</f><v>6</v>")
    materialize(cell, CellEdit(value=1.25, type="number"))
    assert _children(cell) == ["v"]
    assert cell[0].text == "1.25"


def test_payload_stays_before_ext_list() -> None:
    cell = _cell("<v>1</v><extLst/>")
    materialize(cell, CellEdit(value="x", type="string"))
    assert _children(cell) == ["is", "extLst"]


def test_metacharacters_are_escaped_once() -> None:
    cell = _cell("")
    materialize(cell, CellEdit(value='A & B <"c"> \'d\'', type="string"))
    serialized = etree.tostring(cell, encoding="unicode")
    assert "A &amp; B &lt;" in serialized
    assert "&amp;amp;" not in serialized
    reparsed = etree.fromstring(serialized)
    assert reparsed.findtext(f".//{{{NS_MAIN}}}t") == 'A & B <"c"> \'d\''


def test_surrounding_whitespace_is_preserved() -> None:
    cell = _cell("")
    materialize(cell, CellEdit(value="  padded ", type="string"))
    text = cell.find(f"{{{NS_MAIN}}}is/{{{NS_MAIN}}}t")
    assert text is not None
    assert text.get(XML_SPACE) == "preserve"
    assert text.text == "  padded "


def test_clear_formula_cache_removes_cached_value() -> None:
    cell = _cell("<f>A1*2</f><v>84</v>", 'r="C1" t="str"')
    assert clear_formula_cache(cell) is True
    assert _children(cell) == ["f"]
    assert clear_formula_cache(cell) is False


def test_clear_formula_cache_leaves_plain_values() -> None:
    cell = _cell("<v>84</v>")
    assert clear_formula_cache(cell) is False
    assert _children(cell) == ["v"]
