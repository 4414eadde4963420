from __future__ import annotations

import re
from typing import Literal

_A1_PATTERN = re.compile(r"^([A-Za-z]+)([1-9][0-9]*)$")
_COLUMN_LABEL_PATTERN = re.compile(r"^[A-Za-z]+$")

ColumnOrder = Literal[-1, 0, 1]


def split_a1(value: str) -> tuple[str, int]:
    """Split A1 notation into normalized (column_label, row_index)."""
    match = _A1_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"Invalid cell reference: {value}")
    return match.group(1).upper(), int(match.group(2))


def normalize_column_label(label: str) -> str:
    """Return the canonical uppercase form of a column label."""
    normalized = label.strip().upper()
    if not _COLUMN_LABEL_PATTERN.match(normalized):
        raise ValueError(f"Invalid column label: {label}")
    return normalized


def column_label_to_index(label: str) -> int:
    """Convert Excel-style column label (A/AA/AAAA) to 1-based index."""
    index = 0
    for char in normalize_column_label(label):
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index


def column_index_to_label(index: int) -> str:
    """Convert 1-based column index to Excel-style column label."""
    if index < 1:
        raise ValueError("Column index must be positive.")
    chunks: list[str] = []
    current = index
    while current > 0:
        current -= 1
        chunks.append(chr(ord("A") + (current % 26)))
        current //= 26
    return "".join(reversed(chunks))


def column_sort_key(label: str) -> tuple[int, str]:
    """Sort key ordering labels by length first, then lexically."""
    return len(label), label


def compare_columns(a: str, b: str) -> ColumnOrder:
    """Compare two canonical column labels.

    Shorter labels sort first; labels of equal length compare lexically,
    which matches numeric column order for bijective base-26 labels.

    Returns:
        -1 when ``a`` comes before ``b``, 0 when equal, 1 when after.
    """
    key_a = column_sort_key(a)
    key_b = column_sort_key(b)
    if key_a == key_b:
        return 0
    return -1 if key_a < key_b else 1
