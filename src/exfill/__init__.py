"""Fill cell values into existing .xlsx templates."""

from __future__ import annotations

from .edits import PendingEditStore
from .errors import (
    ContainerIOError,
    ExFillError,
    InvalidCellValueError,
    InvalidCoordinateError,
    MalformedTemplateError,
    SheetNotFoundError,
    WorksheetNotFoundError,
)
from .models import CellEdit, SaveResult, SheetMergeSummary, SheetRef, WriterOptions
from .plan import FillPlan, apply_plan, load_plan
from .writer import TemplateWriter

__all__ = [
    "CellEdit",
    "ContainerIOError",
    "ExFillError",
    "FillPlan",
    "InvalidCellValueError",
    "InvalidCoordinateError",
    "MalformedTemplateError",
    "PendingEditStore",
    "SaveResult",
    "SheetMergeSummary",
    "SheetNotFoundError",
    "SheetRef",
    "TemplateWriter",
    "WorksheetNotFoundError",
    "WriterOptions",
    "apply_plan",
    "load_plan",
]
