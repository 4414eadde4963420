from __future__ import annotations

from collections.abc import Iterable
import logging
from pathlib import Path

from .container import (
    WorkbookContainer,
    find_sheet_data,
    normalize_sheet_name,
    sheet_lookup,
)
from .edits import ColumnRef, PendingEditStore
from .errors import InvalidCoordinateError, MalformedTemplateError, SheetNotFoundError
from .merge import merge_sheet
from .models import (
    CellEdit,
    CellValue,
    CellValueType,
    SaveResult,
    SheetMergeSummary,
    SheetRef,
    WriterOptions,
)
from .shared.a1 import split_a1
from .shared.output_path import apply_conflict_policy, resolve_output_path

logger = logging.getLogger(__name__)


class TemplateWriter:
    """Fill cell values into an ``.xlsx`` template.

    Edits are collected per sheet and only applied when :meth:`save` runs,
    which reloads the template so every save starts from the pristine file.

    Example:
        >>> writer = TemplateWriter("monthly_report_template.xlsx")
        >>> writer.select_sheet("Demographics")
        >>> writer.write_cell("B", 2, 500)
        >>> writer.fill_column("E", 2, ["1/10", "2/10", "3/10"])
        >>> writer.save("monthly_filled.xlsx")
    """

    def __init__(
        self, source_path: str | Path, options: WriterOptions | None = None
    ) -> None:
        self.source_path = Path(source_path).resolve()
        self.options = options or WriterOptions()
        container = WorkbookContainer.open(self.source_path)
        self._sheets = container.list_sheets()
        if not self._sheets:
            raise MalformedTemplateError(
                f"Workbook {self.source_path.name} declares no sheets."
            )
        self._lookup = sheet_lookup(self._sheets)
        self._selected = self._sheets[0]
        self._edits = PendingEditStore()
        logger.info(
            "Opened template %s with %d sheet(s).",
            self.source_path,
            len(self._sheets),
        )

    @property
    def sheets(self) -> list[SheetRef]:
        return list(self._sheets)

    @property
    def selected_sheet(self) -> SheetRef:
        return self._selected

    @property
    def edits(self) -> PendingEditStore:
        return self._edits

    def select_sheet(self, name: str) -> SheetRef:
        """Select the sheet that following writes go to.

        The lookup ignores case and surrounding whitespace.

        Raises:
            SheetNotFoundError: If no sheet matches ``name``.
        """
        sheet = self._lookup.get(normalize_sheet_name(name))
        if sheet is None:
            raise SheetNotFoundError(name, [item.name for item in self._sheets])
        self._selected = sheet
        return sheet

    def write_cell(
        self,
        column: ColumnRef,
        row: int,
        value: CellValue,
        value_type: CellValueType | None = None,
    ) -> CellEdit:
        """Queue a value for one cell of the selected sheet.

        Args:
            column: Column label (``"B"``) or 1-based number (``2``).
            row: 1-based row number.
            value: Text or number to write.
            value_type: ``"string"`` or ``"number"``; inferred when omitted.
        """
        return self._edits.set(self._selected.index, row, column, value, value_type)

    def write(
        self, ref: str, value: CellValue, value_type: CellValueType | None = None
    ) -> CellEdit:
        """Queue a value for an A1 reference such as ``"B2"``."""
        try:
            column, row = split_a1(ref)
        except ValueError as exc:
            raise InvalidCoordinateError(str(exc)) from exc
        return self.write_cell(column, row, value, value_type)

    def fill_column(
        self,
        column: ColumnRef,
        starting_row: int,
        values: Iterable[CellValue],
        value_type: CellValueType | None = None,
    ) -> int:
        """Queue values down ``column`` starting at ``starting_row``."""
        return self._edits.fill_range(
            self._selected.index, column, starting_row, values, value_type
        )

    def fill_row(
        self,
        row: int,
        starting_column: ColumnRef,
        values: Iterable[CellValue],
        value_type: CellValueType | None = None,
    ) -> int:
        """Queue values across ``row`` starting at ``starting_column``."""
        return self._edits.fill_row_range(
            self._selected.index, row, starting_column, values, value_type
        )

    def save(self, destination_path: str | Path) -> SaveResult:
        """Apply all queued edits and write a new workbook.

        The pending edits are kept, so saving again (to another path, say)
        produces the same content.

        Raises:
            ContainerIOError: If the template or destination cannot be accessed.
            MalformedTemplateError: If a worksheet cannot be merged.
        """
        output_path = resolve_output_path(
            destination_path, default_suffix=self.source_path.suffix or ".xlsx"
        )
        output_path, warning, skipped = apply_conflict_policy(
            output_path, self.options.on_conflict
        )
        warnings = [warning] if warning else []
        if skipped:
            logger.warning("%s", warning)
            return SaveResult(
                out_path=str(output_path), warnings=warnings, skipped=True
            )

        container = WorkbookContainer.open(self.source_path)
        summaries: list[SheetMergeSummary] = []
        for sheet in self._sheets:
            tree = container.load_worksheet_tree(sheet)
            sheet_data = find_sheet_data(tree, sheet)
            if sheet_data is None:
                if self._edits.has_edits(sheet.index):
                    raise MalformedTemplateError(
                        f"Sheet {sheet.name!r} has no cell grid to write into."
                    )
                continue
            summary = merge_sheet(
                sheet_data,
                self._edits.iterate_sheet(sheet.index),
                summary=SheetMergeSummary(sheet=sheet.name),
            )
            logger.debug(
                "Merged sheet %s: %d row(s) inserted, %d cell(s) inserted, "
                "%d cell(s) updated, %d formula cache(s) cleared, "
                "%d shared formula member(s) expanded.",
                sheet.name,
                summary.rows_inserted,
                summary.cells_inserted,
                summary.cells_updated,
                summary.formula_caches_cleared,
                summary.shared_formulas_expanded,
            )
            container.save_worksheet_tree(sheet, tree)
            summaries.append(summary)

        container.write(output_path, compression=self.options.compression)
        logger.info("Saved filled workbook to %s.", output_path)
        return SaveResult(
            out_path=str(output_path), sheets=summaries, warnings=warnings
        )
