"""Sorted two-level merge of pending edits into a worksheet row tree.

Rows under ``<sheetData>`` and cells under each ``<row>`` are walked in
lock-step with the pending edits, which are already ordered. Every existing
row and cell is visited exactly once, new nodes are inserted immediately
before the first existing node with a greater key, and the output stays
strictly ascending without a final sort.

Shared formula groups anchored on an overwritten cell are expanded first
(see :mod:`exfill.formulas`), so their other members keep a formula.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import re

from lxml import etree

from .errors import MalformedTemplateError
from .formulas import release_shared_formulas, shared_anchors
from .materialize import clear_formula_cache, materialize, qualified_name
from .models import CellEdit, SheetMergeSummary
from .shared.a1 import column_index_to_label, column_label_to_index, compare_columns

_CELL_REF_RE = re.compile(r"^([A-Z]+)([1-9][0-9]*)$")
_NO_EDITS: Mapping[str, CellEdit] = {}


def merge_sheet(
    sheet_data: etree._Element,
    row_edits: Iterable[tuple[int, Mapping[str, CellEdit]]],
    *,
    summary: SheetMergeSummary | None = None,
) -> SheetMergeSummary:
    """Merge ascending row edits into ``<sheetData>``.

    Args:
        sheet_data: The worksheet ``sheetData`` element, modified in place.
        row_edits: (row, {column: edit}) pairs in ascending row order, each
            mapping in ascending column order.
        summary: Optional summary to accumulate counters into.

    Returns:
        Merge counters for the sheet.

    Raises:
        MalformedTemplateError: If existing rows or cells are out of order.
    """
    summary = summary if summary is not None else SheetMergeSummary()
    row_tag = qualified_name(sheet_data, "row")
    existing = _existing_rows(sheet_data, row_tag)
    pending_rows = list(row_edits)
    formulas = sheet_data.iter(qualified_name(sheet_data, "f"))
    if pending_rows and shared_anchors(formulas):
        _release_overwritten_anchors(sheet_data, existing, pending_rows, summary)
    pending = iter(pending_rows)
    next_pending = next(pending, None)
    index = 0

    while index < len(existing) or next_pending is not None:
        current = existing[index] if index < len(existing) else None
        if next_pending is not None and (
            current is None or next_pending[0] < current[0]
        ):
            row_number, edits = next_pending
            row = etree.SubElement(sheet_data, row_tag)
            row.set("r", str(row_number))
            if current is not None:
                current[1].addprevious(row)
            summary.rows_inserted += 1
            _merge_cells(row, row_number, edits, summary)
            next_pending = next(pending, None)
        elif next_pending is not None and next_pending[0] == current[0]:
            _merge_cells(current[1], current[0], next_pending[1], summary)
            index += 1
            next_pending = next(pending, None)
        else:
            _merge_cells(current[1], current[0], _NO_EDITS, summary)
            index += 1
    return summary


def _release_overwritten_anchors(
    sheet_data: etree._Element,
    existing: list[tuple[int, etree._Element]],
    pending_rows: list[tuple[int, Mapping[str, CellEdit]]],
    summary: SheetMergeSummary,
) -> None:
    cell_tag = qualified_name(sheet_data, "c")
    for row_number, row in existing:
        _existing_cells(row, row_number, cell_tag)
    overwritten = {
        f"{column}{row_number}"
        for row_number, edits in pending_rows
        for column in edits
    }
    summary.shared_formulas_expanded += release_shared_formulas(
        sheet_data, overwritten
    )


def _merge_cells(
    row: etree._Element,
    row_number: int,
    edits: Mapping[str, CellEdit],
    summary: SheetMergeSummary,
) -> None:
    """Merge ascending column edits into a single ``<row>``."""
    cell_tag = qualified_name(row, "c")
    existing = _existing_cells(row, row_number, cell_tag)
    pending = iter(edits.items())
    next_pending = next(pending, None)
    index = 0
    inserted = False

    while index < len(existing) or next_pending is not None:
        current = existing[index] if index < len(existing) else None
        order = (
            compare_columns(next_pending[0], current[0])
            if next_pending is not None and current is not None
            else None
        )
        if next_pending is not None and (current is None or order == -1):
            column, edit = next_pending
            cell = etree.SubElement(row, cell_tag)
            cell.set("r", f"{column}{row_number}")
            # Cells precede the row extLst.
            following = (
                current[1]
                if current is not None
                else row.find(qualified_name(row, "extLst"))
            )
            if following is not None:
                following.addprevious(cell)
            materialize(cell, edit)
            summary.cells_inserted += 1
            inserted = True
            next_pending = next(pending, None)
        elif next_pending is not None and order == 0:
            materialize(current[1], next_pending[1])
            summary.cells_updated += 1
            index += 1
            next_pending = next(pending, None)
        else:
            if clear_formula_cache(current[1]):
                summary.formula_caches_cleared += 1
            index += 1

    if inserted and "spans" in row.attrib:
        # Column span hints no longer cover the inserted cells.
        del row.attrib["spans"]


def _existing_rows(
    sheet_data: etree._Element, row_tag: str
) -> list[tuple[int, etree._Element]]:
    """Return (row_number, row) pairs, filling in implicit row numbers."""
    rows: list[tuple[int, etree._Element]] = []
    previous = 0
    for row in sheet_data.iterchildren(row_tag):
        raw = row.get("r")
        if raw is None:
            number = previous + 1
            row.set("r", str(number))
        else:
            try:
                number = int(raw)
            except ValueError:
                raise MalformedTemplateError(f"Invalid row number: {raw!r}") from None
        if number <= previous:
            raise MalformedTemplateError(
                f"Rows are not in ascending order: {number} follows {previous}."
            )
        rows.append((number, row))
        previous = number
    return rows


def _existing_cells(
    row: etree._Element, row_number: int, cell_tag: str
) -> list[tuple[str, etree._Element]]:
    """Return (column_label, cell) pairs, filling in implicit references."""
    cells: list[tuple[str, etree._Element]] = []
    previous = 0
    for cell in row.iterchildren(cell_tag):
        ref = cell.get("r")
        if ref is None:
            column = previous + 1
            cell.set("r", f"{column_index_to_label(column)}{row_number}")
        else:
            match = _CELL_REF_RE.match(ref.upper())
            if match is None or int(match.group(2)) != row_number:
                raise MalformedTemplateError(
                    f"Cell reference {ref!r} does not belong to row {row_number}."
                )
            column = column_label_to_index(match.group(1))
        if column <= previous:
            raise MalformedTemplateError(
                f"Cells in row {row_number} are not in ascending order "
                f"at {cell.get('r')!r}."
            )
        cells.append((column_index_to_label(column), cell))
        previous = column
    return cells

