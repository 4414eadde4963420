"""Exception types raised by ExFill."""

from __future__ import annotations


class ExFillError(Exception):
    """Base class for all ExFill errors."""


class SheetNotFoundError(ExFillError, KeyError):
    """Raised when a sheet name cannot be resolved against the workbook."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = list(available or [])
        message = f"Cannot find a sheet with the name {name!r}."
        if self.available:
            message += f" Available sheets: {', '.join(self.available)}"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0])


class InvalidCoordinateError(ExFillError, ValueError):
    """Raised when a row or column resolves to a position below 1."""


class InvalidCellValueError(ExFillError, ValueError):
    """Raised when a value cannot be written with the requested type."""


class ContainerIOError(ExFillError, OSError):
    """Raised when the workbook archive cannot be read or written."""


class MalformedTemplateError(ExFillError, ValueError):
    """Raised when the template lacks an expected structural element."""


class WorksheetNotFoundError(MalformedTemplateError):
    """Raised when a worksheet part listed in the workbook is absent."""
