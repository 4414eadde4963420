from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ExFillError
from .models import WriterOptions
from .plan import apply_plan, load_plan
from .shared.output_path import OnConflictPolicy
from .writer import TemplateWriter

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "EXFILL_LOG_LEVEL"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class CliConfig(BaseModel):
    """Configuration for one CLI invocation."""

    command: Literal["fill", "sheets"]
    template: Path = Field(..., description="Template workbook path.")
    plan: Path | None = Field(default=None, description="Fill plan JSON path.")
    out: Path | None = Field(default=None, description="Output workbook path.")
    on_conflict: OnConflictPolicy = Field(
        default="overwrite", description="Output conflict policy."
    )
    log_level: LogLevel = Field(default="INFO", description="Logging level.")
    log_file: Path | None = Field(default=None, description="Optional log file path.")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value


def main(argv: list[str] | None = None) -> int:
    """Run the ExFill command line.

    Args:
        argv: Optional CLI arguments for testing.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    try:
        config = _parse_args(argv)
    except ValidationError as exc:
        logger.error("Invalid exfill arguments: %s", exc)
        return 1
    _configure_logging(config)
    try:
        if config.command == "sheets":
            return _run_sheets(config)
        return _run_fill(config)
    except (ExFillError, ValidationError) as exc:
        logger.error("exfill %s failed: %s", config.command, exc)
        return 1


def _run_sheets(config: CliConfig) -> int:
    writer = TemplateWriter(config.template)
    payload = [sheet.model_dump() for sheet in writer.sheets]
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _run_fill(config: CliConfig) -> int:
    if config.plan is None or config.out is None:
        raise ExFillError("The fill command requires --plan and --out.")
    plan = load_plan(config.plan)
    writer = TemplateWriter(
        config.template, WriterOptions(on_conflict=config.on_conflict)
    )
    count = apply_plan(writer, plan)
    logger.info("Queued %d cell(s) from %s.", count, config.plan)
    result = writer.save(config.out)
    print(result.model_dump_json(indent=2))
    return 0


def _parse_args(argv: list[str] | None) -> CliConfig:
    """Parse CLI arguments into a config.

    Args:
        argv: Optional CLI argument list.

    Returns:
        Parsed configuration.
    """
    parser = argparse.ArgumentParser(
        prog="exfill", description="Fill cell values into an .xlsx template."
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv(LOG_LEVEL_ENV, "INFO"),
        help=f"Logging level (DEBUG, INFO, WARNING, ERROR). Env: {LOG_LEVEL_ENV}.",
    )
    parser.add_argument("--log-file", type=Path, help="Optional log file path.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    fill = subparsers.add_parser("fill", help="Apply a fill plan to a template.")
    fill.add_argument("template", type=Path, help="Template workbook.")
    fill.add_argument("--plan", type=Path, required=True, help="Fill plan JSON.")
    fill.add_argument("--out", type=Path, required=True, help="Output workbook.")
    fill.add_argument(
        "--on-conflict",
        choices=["overwrite", "skip", "rename"],
        default="overwrite",
        help="Output conflict policy (overwrite/skip/rename).",
    )

    sheets = subparsers.add_parser("sheets", help="List the sheets of a template.")
    sheets.add_argument("template", type=Path, help="Template workbook.")

    args = parser.parse_args(argv)
    return CliConfig(
        command=args.command,
        template=args.template,
        plan=getattr(args, "plan", None),
        out=getattr(args, "out", None),
        on_conflict=getattr(args, "on_conflict", "overwrite"),
        log_level=args.log_level,
        log_file=args.log_file,
    )


def _configure_logging(config: CliConfig) -> None:
    """Configure logging for the CLI process.

    Args:
        config: CLI configuration.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=config.log_level,
        handlers=handlers,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
