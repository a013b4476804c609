"""Rolling JSON history of reconciled funding records."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from app.models.funding import FundingRecord
from pipelines.funding.errors import HistoryLoadFailure
from pipelines.funding.reconciler import merge_records

logger = logging.getLogger("pipelines.funding.history")

DEFAULT_RETENTION_DAYS = 30


def atomic_write(path: Path, payload: str) -> None:
    temp_path = path.with_name(f"{path.name}.tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path.write_text(payload, encoding="utf-8")
    temp_path.replace(path)


def prune_records(
    records: Mapping[str, FundingRecord],
    *,
    as_of: date,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> dict[str, FundingRecord]:
    """Drop records reported more than ``retention_days`` days before ``as_of``."""
    cutoff = as_of - timedelta(days=retention_days)
    return {key: record for key, record in records.items() if record.funding_news_date >= cutoff}


class HistoryStore:
    """Loads, prunes and atomically saves the reconciled record set."""

    def __init__(self, path: Path, *, retention_days: int = DEFAULT_RETENTION_DAYS) -> None:
        if retention_days <= 0:
            raise ValueError("retention_days must be greater than zero.")
        self.path = Path(path)
        self.retention_days = retention_days
        self.last_cleanup: datetime | None = None

    def load(self) -> dict[str, FundingRecord]:
        """Return the persisted records; a missing or corrupt file yields an empty map."""
        try:
            payload = self._read_payload()
        except HistoryLoadFailure as exc:
            logger.warning("history.load_failed", extra={"path": str(self.path), "code": exc.code, "error": str(exc)})
            return {}
        if payload is None:
            logger.info("No history at %s yet; starting empty.", self.path)
            return {}

        self.last_cleanup = _parse_timestamp(payload.get("last_cleanup"))
        records: dict[str, FundingRecord] = {}
        for entry in payload.get("entries") or []:
            try:
                record = FundingRecord.model_validate(entry)
            except ValidationError as exc:
                logger.warning("history.entry_invalid", extra={"path": str(self.path), "errors": exc.error_count()})
                continue
            existing = records.get(record.key)
            if existing is None:
                records[record.key] = record
            elif record.source_priority > existing.source_priority:
                records[record.key] = merge_records(record, existing)
            else:
                records[record.key] = merge_records(existing, record)
        logger.info("Loaded %s history entries from %s.", len(records), self.path)
        return records

    def prune(self, records: Mapping[str, FundingRecord], as_of: date) -> dict[str, FundingRecord]:
        kept = prune_records(records, as_of=as_of, retention_days=self.retention_days)
        self.last_cleanup = datetime.now(timezone.utc)
        logger.info(
            "history.pruned",
            extra={"before": len(records), "after": len(kept), "as_of": as_of.isoformat(), "days": self.retention_days},
        )
        return kept

    def save(self, records: Mapping[str, FundingRecord]) -> None:
        ordered = sorted(records.values(), key=lambda record: (record.funding_news_date, record.key))
        payload = {
            "entries": [record.model_dump(mode="json") for record in ordered],
            "last_cleanup": (self.last_cleanup or datetime.now(timezone.utc)).isoformat(),
        }
        atomic_write(self.path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
        logger.info("Saved %s history entries to %s.", len(ordered), self.path)

    def _read_payload(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise HistoryLoadFailure(f"History file {self.path} is not valid JSON: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise HistoryLoadFailure(f"Unable to read history file {self.path}: {exc}") from exc
        if isinstance(payload, list):
            return {"entries": payload}
        if not isinstance(payload, dict):
            raise HistoryLoadFailure(f"History file {self.path} is not a JSON object.")
        entries = payload.get("entries")
        if entries is not None and not isinstance(entries, list):
            raise HistoryLoadFailure(f"History file {self.path} has non-list entries.")
        return payload


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
