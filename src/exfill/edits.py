from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator

from pydantic import ValidationError

from .errors import InvalidCellValueError, InvalidCoordinateError
from .models import CellEdit, CellValue, CellValueType, infer_value_type
from .shared.a1 import (
    column_index_to_label,
    column_label_to_index,
    column_sort_key,
    normalize_column_label,
)

ColumnRef = str | int
RowEdits = dict[str, CellEdit]


def resolve_column(column: ColumnRef) -> str:
    """Resolve a column label or 1-based column number to a canonical label."""
    if isinstance(column, bool):
        raise InvalidCoordinateError(f"Invalid column: {column!r}")
    if isinstance(column, int):
        if column < 1:
            raise InvalidCoordinateError("Column cannot be less than 1.")
        return column_index_to_label(column)
    try:
        return normalize_column_label(column)
    except ValueError as exc:
        raise InvalidCoordinateError(str(exc)) from exc


def resolve_row(row: int) -> int:
    """Validate a 1-based row number."""
    if isinstance(row, bool) or not isinstance(row, int):
        raise InvalidCoordinateError(f"Invalid row: {row!r}")
    if row < 1:
        raise InvalidCoordinateError("Row cannot be less than 1.")
    return row


def build_edit(value: CellValue, value_type: CellValueType | None) -> CellEdit:
    """Build a validated edit, inferring the type when omitted."""
    resolved_type = value_type or infer_value_type(value)
    try:
        return CellEdit(value=value, type=resolved_type)
    except ValidationError as exc:
        raise InvalidCellValueError(
            f"Cannot write {value!r} as {resolved_type}: "
            f"{exc.errors()[0].get('msg', exc)}"
        ) from exc


class _SheetEdits:
    """Row and column keys of one sheet, each kept in ascending order."""

    def __init__(self) -> None:
        self.row_numbers: list[int] = []
        self.rows: dict[int, dict[str, CellEdit]] = {}
        self.columns: dict[int, list[tuple[int, str]]] = {}

    def put(self, row: int, column: str, edit: CellEdit) -> None:
        cells = self.rows.get(row)
        if cells is None:
            bisect.insort(self.row_numbers, row)
            cells = self.rows[row] = {}
            self.columns[row] = []
        if column not in cells:
            bisect.insort(self.columns[row], column_sort_key(column))
        cells[column] = edit

    def iter_rows(self) -> Iterator[tuple[int, RowEdits]]:
        for row in self.row_numbers:
            cells = self.rows[row]
            yield row, {label: cells[label] for _, label in self.columns[row]}

    def __len__(self) -> int:
        return sum(len(cells) for cells in self.rows.values())


class PendingEditStore:
    """Sparse cell edits keyed by (sheet, row, column).

    Rows are kept ascending and columns ascending in column order on every
    insert, so iteration never needs to sort.
    """

    def __init__(self) -> None:
        self._sheets: dict[int, _SheetEdits] = {}

    def set(  # noqa: A003
        self,
        sheet: int,
        row: int,
        column: ColumnRef,
        value: CellValue,
        value_type: CellValueType | None = None,
    ) -> CellEdit:
        """Insert or overwrite the edit for a single cell.

        Args:
            sheet: Sheet index the edit belongs to.
            row: 1-based row number.
            column: Column label or 1-based column number.
            value: Value to write.
            value_type: Explicit type; inferred from the value when omitted.

        Returns:
            The stored edit.

        Raises:
            InvalidCoordinateError: If row or column is below 1 or unparsable.
            InvalidCellValueError: If the value does not fit the type.
        """
        resolved_row = resolve_row(row)
        label = resolve_column(column)
        edit = build_edit(value, value_type)
        sheet_edits = self._sheets.get(sheet)
        if sheet_edits is None:
            sheet_edits = self._sheets[sheet] = _SheetEdits()
        sheet_edits.put(resolved_row, label, edit)
        return edit

    def fill_range(
        self,
        sheet: int,
        column: ColumnRef,
        starting_row: int,
        values: Iterable[CellValue],
        value_type: CellValueType | None = None,
    ) -> int:
        """Write values down a column starting at ``starting_row``.

        Returns:
            Number of cells written.
        """
        count = 0
        for offset, value in enumerate(values):
            self.set(sheet, starting_row + offset, column, value, value_type)
            count += 1
        return count

    def fill_row_range(
        self,
        sheet: int,
        row: int,
        starting_column: ColumnRef,
        values: Iterable[CellValue],
        value_type: CellValueType | None = None,
    ) -> int:
        """Write values across a row starting at ``starting_column``.

        Returns:
            Number of cells written.
        """
        start = resolve_column(starting_column)
        start_index = column_label_to_index(start)
        count = 0
        for offset, value in enumerate(values):
            self.set(sheet, row, start_index + offset, value, value_type)
            count += 1
        return count

    def iterate_sheet(self, sheet: int) -> Iterator[tuple[int, RowEdits]]:
        """Yield (row, {column: edit}) pairs in ascending row and column order."""
        sheet_edits = self._sheets.get(sheet)
        if sheet_edits is None:
            return iter(())
        return sheet_edits.iter_rows()

    def get(self, sheet: int, row: int, column: ColumnRef) -> CellEdit | None:
        sheet_edits = self._sheets.get(sheet)
        if sheet_edits is None:
            return None
        return sheet_edits.rows.get(row, {}).get(resolve_column(column))

    def has_edits(self, sheet: int) -> bool:
        return sheet in self._sheets

    def sheets(self) -> list[int]:
        return sorted(self._sheets)

    def clear(self) -> None:
        self._sheets.clear()

    def __len__(self) -> int:
        return sum(len(sheet_edits) for sheet_edits in self._sheets.values())

