from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
import zipfile

from lxml import etree
from openpyxl import Workbook
import pytest

NS_MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
NS_REL_DOC = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
NS = {"x": NS_MAIN}

_CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" '
    'ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/xl/workbook.xml" ContentType="application/'
    'vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml"/>'
    "{overrides}"
    "</Types>"
)
_SHEET_OVERRIDE = (
    '<Override PartName="/xl/worksheets/sheet{index}.xml" ContentType="application/'
    'vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"/>'
)
_ROOT_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/'
    'package/2006/relationships">'
    '<Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/'
    '2006/relationships/officeDocument" Target="xl/workbook.xml"/>'
    "</Relationships>"
)
_WORKBOOK_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
    '<Relationships xmlns="http://schemas.openxmlformats.org/'
    'package/2006/relationships">'
    "{relationships}"
    "</Relationships>"
)
_SHEET_REL = (
    '<Relationship Id="rId{index}" Type="http://schemas.openxmlformats.org/'
    'officeDocument/2006/relationships/worksheet" '
    'Target="worksheets/sheet{index}.xml"/>'
)


def worksheet_xml(sheet_data: str, *, extra: str = "") -> str:
    """Wrap ``sheetData`` content in a worksheet part."""
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<worksheet xmlns="{NS_MAIN}" xmlns:r="{NS_REL_DOC}">'
        f"<sheetData>{sheet_data}</sheetData>{extra}</worksheet>"
    )


def build_package(path: Path, sheets: Sequence[tuple[str, str]]) -> Path:
    """Write a minimal .xlsx package with the given (name, sheet_xml) parts."""
    overrides = "".join(
        _SHEET_OVERRIDE.format(index=index) for index in range(1, len(sheets) + 1)
    )
    sheet_entries = "".join(
        f'<sheet name="{name}" sheetId="{index}" r:id="rId{index}"/>'
        for index, (name, _) in enumerate(sheets, start=1)
    )
    relationships = "".join(
        _SHEET_REL.format(index=index) for index in range(1, len(sheets) + 1)
    )
    workbook = (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        f'<workbook xmlns="{NS_MAIN}" xmlns:r="{NS_REL_DOC}">'
        f"<sheets>{sheet_entries}</sheets></workbook>"
    )
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(
            "[Content_Types].xml", _CONTENT_TYPES.format(overrides=overrides)
        )
        archive.writestr("_rels/.rels", _ROOT_RELS)
        archive.writestr("xl/workbook.xml", workbook)
        archive.writestr(
            "xl/_rels/workbook.xml.rels",
            _WORKBOOK_RELS.format(relationships=relationships),
        )
        for index, (_, sheet_xml) in enumerate(sheets, start=1):
            archive.writestr(f"xl/worksheets/sheet{index}.xml", sheet_xml)
    return path


def read_part(path: Path, part_name: str) -> etree._Element:
    """Parse one XML part of a written workbook."""
    with zipfile.ZipFile(path) as archive:
        return etree.fromstring(archive.read(part_name))


def cells_by_ref(root: etree._Element) -> dict[str, etree._Element]:
    return {cell.get("r"): cell for cell in root.iterfind(".//x:c", NS)}


def row_numbers(root: etree._Element) -> list[int]:
    return [int(row.get("r")) for row in root.iterfind(".//x:row", NS)]


def cell_refs(row: etree._Element) -> list[str]:
    return [cell.get("r") for cell in row.iterfind("x:c", NS)]


def _create_report_template(path: Path) -> None:
    workbook = Workbook()
    sheet = workbook.active
    assert sheet is not None
    sheet.title = "Demographics"
    sheet["A1"] = "Label"
    sheet["B1"] = "Count"
    sheet["A2"] = "Men"
    sheet["B2"] = "old"
    sheet["C2"] = 123
    sheet["A4"] = "Women"
    sheet["B4"] = 200
    engagement = workbook.create_sheet("Engagement-Reach per post")
    engagement["A1"] = "Post"
    engagement["E1"] = "Date"
    engagement["F1"] = "Reach"
    workbook.save(path)
    workbook.close()


@pytest.fixture
def report_template(tmp_path: Path) -> Path:
    """Two-sheet workbook saved by openpyxl (strings in the shared table)."""
    path = tmp_path / "monthly_report_template.xlsx"
    _create_report_template(path)
    return path


@pytest.fixture
def package_factory(tmp_path: Path) -> Callable[[Sequence[tuple[str, str]]], Path]:
    """Build hand-written packages for tests that need exact worksheet XML."""
    counter = {"value": 0}

    def _build(sheets: Sequence[tuple[str, str]]) -> Path:
        counter["value"] += 1
        return build_package(tmp_path / f"package_{counter['value']}.xlsx", sheets)

    return _build
