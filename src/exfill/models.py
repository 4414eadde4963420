from __future__ import annotations

import math
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .shared.output_path import OnConflictPolicy

CellValueType = Literal["string", "number"]
CellValue = str | int | float
CompressionMode = Literal["preserve", "deflated", "stored"]

_XML_ILLEGAL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")
_NUMERAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


def infer_value_type(value: CellValue) -> CellValueType:
    """Infer the cell type for a value written without an explicit type."""
    return "string" if isinstance(value, str) else "number"


class CellEdit(BaseModel):
    """Pending value for a single cell."""

    model_config = ConfigDict(frozen=True)

    value: CellValue
    type: CellValueType  # noqa: A003

    @model_validator(mode="after")
    def _validate_value(self) -> CellEdit:
        if isinstance(self.value, str) and _XML_ILLEGAL_CHARS.search(self.value):
            raise ValueError("Value contains characters not allowed in XML.")
        if self.type != "number":
            return self
        if isinstance(self.value, str) and not _NUMERAL.match(self.value.strip()):
            raise ValueError(f"Value {self.value!r} is not a number.")
        try:
            finite = math.isfinite(float(self.value))
        except OverflowError:
            finite = False
        if not finite:
            raise ValueError(f"Value {self.value!r} is not a finite number.")
        return self

    def numeral(self) -> str:
        """Return the value as written into a numeric value slot."""
        if isinstance(self.value, str):
            return self.value.strip()
        return str(self.value)

    def text(self) -> str:
        """Return the value as written into an inline string."""
        return self.value if isinstance(self.value, str) else str(self.value)


class SheetRef(BaseModel):
    """Entry of the workbook sheet table."""

    name: str
    index: int = Field(..., ge=1, description="1-based position in the workbook.")
    part_name: str = Field(..., description="Zip member holding the sheet XML.")


class WriterOptions(BaseModel):
    """Options controlling how a filled workbook is written."""

    on_conflict: OnConflictPolicy = Field(
        default="overwrite", description="Output conflict policy."
    )
    compression: CompressionMode = Field(
        default="preserve",
        description="Zip compression of output members (preserve keeps the template).",
    )


class SheetMergeSummary(BaseModel):
    """Counters collected while merging edits into one worksheet."""

    sheet: str = ""
    rows_inserted: int = 0
    cells_inserted: int = 0
    cells_updated: int = 0
    formula_caches_cleared: int = 0
    shared_formulas_expanded: int = 0


class SaveResult(BaseModel):
    """Outcome of writing a filled workbook."""

    out_path: str
    sheets: list[SheetMergeSummary] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    skipped: bool = False
