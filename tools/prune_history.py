"""Retention enforcement for the funding-tracker history file."""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Sequence

from pipelines.funding.history import DEFAULT_RETENTION_DAYS, HistoryStore

logger = logging.getLogger("tools.prune_history")


class RetentionError(RuntimeError):
    """Raised when retention enforcement fails."""

    def __init__(self, message: str, code: str = "E_RETENTION_FAILED") -> None:
        super().__init__(message)
        self.code = code


@dataclass
class RetentionResult:
    kept: int = 0
    removed: list[str] = field(default_factory=list)


def _default_days() -> int:
    value = os.getenv("RETENTION_DAYS")
    if value is None or not value.strip():
        return DEFAULT_RETENTION_DAYS
    try:
        days = int(value)
    except ValueError as exc:
        raise ValueError(f"RETENTION_DAYS must be an integer: {exc}") from exc
    if days <= 0:
        raise ValueError("RETENTION_DAYS must be greater than zero.")
    return days


def _positive_days(value: str) -> int:
    try:
        days = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a valid integer day count.") from exc
    if days <= 0:
        raise argparse.ArgumentTypeError("Retention windows must be greater than zero days.")
    return days


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a YYYY-MM-DD date.") from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Drop funding records older than the retention window.")
    parser.add_argument("--path", type=Path, required=True, help="History JSON file.")
    parser.add_argument("--delete", action="store_true", help="Actually rewrite the file (default dry-run).")
    parser.add_argument(
        "--days",
        type=_positive_days,
        default=None,
        help=f"Retention window in days (env RETENTION_DAYS or default {DEFAULT_RETENTION_DAYS}).",
    )
    parser.add_argument("--as-of", type=_iso_date, default=None, help="Reference date (default today, UTC).")
    parser.add_argument("--report", type=Path, default=None, help="Where to write the JSON summary.")
    args = parser.parse_args(argv)
    try:
        args.days = args.days or _default_days()
    except ValueError as exc:
        parser.error(str(exc))
    return args


def enforce_retention(path: Path, *, days: int, delete: bool, as_of: date | None = None) -> RetentionResult:
    if not path.exists():
        raise RetentionError(f"Path not found: {path}", code="E_RETENTION_PATH")

    as_of = as_of or datetime.now(timezone.utc).date()
    store = HistoryStore(path, retention_days=days)
    records = store.load()
    kept = store.prune(records, as_of)
    result = RetentionResult(kept=len(kept), removed=sorted(set(records) - set(kept)))

    for key in result.removed:
        if delete:
            logger.info("Removed %s", key)
        else:
            logger.info("[DRY-RUN] Would remove %s", key)

    if delete and result.removed:
        try:
            store.save(kept)
        except OSError as exc:
            raise RetentionError(f"Unable to rewrite {path}: {exc}", code="E_RETENTION_PERMISSION") from exc
    return result


def write_report(report_path: Path, *, payload: dict) -> None:
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    args = parse_args(argv)
    try:
        outcome = enforce_retention(args.path, days=args.days, delete=args.delete, as_of=args.as_of)
    except RetentionError as exc:
        logger.error("Retention enforcement failed: %s (code=%s)", exc, exc.code)
        return 1

    if args.report:
        write_report(
            args.report,
            payload={
                "run_at": datetime.now(timezone.utc).isoformat(),
                "kept": outcome.kept,
                "removed": outcome.removed,
                "deleted": args.delete,
            },
        )
    logger.info("Retention summary kept=%s removed=%s delete=%s", outcome.kept, len(outcome.removed), args.delete)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
