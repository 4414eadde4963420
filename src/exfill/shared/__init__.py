from __future__ import annotations

from .a1 import (
    column_index_to_label,
    column_label_to_index,
    column_sort_key,
    compare_columns,
    normalize_column_label,
    split_a1,
)
from .output_path import (
    OnConflictPolicy,
    apply_conflict_policy,
    next_available_path,
    resolve_output_path,
)

__all__ = [
    "OnConflictPolicy",
    "apply_conflict_policy",
    "column_index_to_label",
    "column_label_to_index",
    "column_sort_key",
    "compare_columns",
    "next_available_path",
    "normalize_column_label",
    "resolve_output_path",
    "split_a1",
]
