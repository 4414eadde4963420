from __future__ import annotations

from pathlib import Path
from typing import Literal

OnConflictPolicy = Literal["overwrite", "skip", "rename"]


def resolve_output_path(destination: str | Path, *, default_suffix: str) -> Path:
    """Resolve a destination path, adding the suffix when it has none."""
    candidate = Path(destination).expanduser()
    if not candidate.suffix:
        candidate = candidate.with_name(f"{candidate.name}{default_suffix}")
    return candidate.resolve()


def apply_conflict_policy(
    output_path: Path, on_conflict: OnConflictPolicy
) -> tuple[Path, str | None, bool]:
    """Apply output conflict policy to a resolved output path."""
    if not output_path.exists():
        return output_path, None, False
    if on_conflict == "skip":
        return (
            output_path,
            f"Output exists; skipping write: {output_path.name}",
            True,
        )
    if on_conflict == "rename":
        renamed = next_available_path(output_path)
        return (
            renamed,
            f"Output exists; renamed to: {renamed.name}",
            False,
        )
    return output_path, None, False


def next_available_path(path: Path) -> Path:
    """Return the next available path by appending a numeric suffix."""
    if not path.exists():
        return path
    stem = path.stem
    suffix = path.suffix
    for idx in range(1, 10_000):
        candidate = path.with_name(f"{stem}_{idx}{suffix}")
        if not candidate.exists():
            return candidate
    raise RuntimeError(f"Failed to resolve unique path for {path}")
