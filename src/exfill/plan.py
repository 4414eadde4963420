from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .errors import ContainerIOError
from .models import CellValue, CellValueType
from .shared.a1 import split_a1
from .writer import TemplateWriter


class _PlanOpBase(BaseModel):
    sheet: str | None = Field(
        default=None, description="Target sheet; falls back to the plan sheet."
    )
    type: CellValueType | None = Field(  # noqa: A003
        default=None, description="Cell type; inferred from each value when omitted."
    )

    @field_validator("sheet")
    @classmethod
    def _validate_sheet(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("sheet must not be empty.")
        return value


class WriteCellOp(_PlanOpBase):
    """Write one value, addressed by A1 reference or by column and row."""

    op: Literal["write_cell"] = "write_cell"
    cell: str | None = None
    column: str | int | None = None
    row: int | None = None
    value: CellValue

    @field_validator("cell")
    @classmethod
    def _validate_cell(cls, value: str | None) -> str | None:
        if value is None:
            return None
        column, row = split_a1(value)
        return f"{column}{row}"

    @model_validator(mode="after")
    def _validate_address(self) -> WriteCellOp:
        if self.cell is not None:
            if self.column is not None or self.row is not None:
                raise ValueError("write_cell accepts either cell or column/row.")
            return self
        if self.column is None or self.row is None:
            raise ValueError("write_cell requires cell or both column and row.")
        return self


class FillColumnOp(_PlanOpBase):
    """Write values down a column."""

    op: Literal["fill_column"] = "fill_column"
    column: str | int
    start_row: int
    values: list[CellValue]


class FillRowOp(_PlanOpBase):
    """Write values across a row."""

    op: Literal["fill_row"] = "fill_row"
    row: int
    start_column: str | int
    values: list[CellValue]


PlanOp = Annotated[
    WriteCellOp | FillColumnOp | FillRowOp, Field(discriminator="op")
]


class FillPlan(BaseModel):
    """Ordered list of writes applied to a template."""

    sheet: str | None = Field(default=None, description="Default sheet for ops.")
    ops: list[PlanOp] = Field(default_factory=list)

    @field_validator("sheet")
    @classmethod
    def _validate_sheet(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("sheet must not be empty.")
        return value


def load_plan(path: Path) -> FillPlan:
    """Load a fill plan from a JSON file.

    Raises:
        ContainerIOError: If the file cannot be read.
        pydantic.ValidationError: If the content is not a valid plan.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContainerIOError(f"Cannot read fill plan {path}: {exc}") from exc
    return FillPlan.model_validate_json(text)


def apply_plan(writer: TemplateWriter, plan: FillPlan) -> int:
    """Queue every op of ``plan`` on ``writer`` in order.

    Returns:
        Number of cells queued.
    """
    count = 0
    for op in plan.ops:
        sheet = op.sheet or plan.sheet
        if sheet is not None:
            writer.select_sheet(sheet)
        if isinstance(op, WriteCellOp):
            if op.cell is not None:
                writer.write(op.cell, op.value, op.type)
            else:
                writer.write_cell(op.column, op.row, op.value, op.type)
            count += 1
        elif isinstance(op, FillColumnOp):
            count += writer.fill_column(op.column, op.start_row, op.values, op.type)
        else:
            count += writer.fill_row(op.row, op.start_column, op.values, op.type)
    return count
