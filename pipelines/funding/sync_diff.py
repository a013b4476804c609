"""Translate reconciliation output into spreadsheet append/update operations."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

from app.models.funding import FundingRecord, identity_key

logger = logging.getLogger("pipelines.funding.sync_diff")

SHEET_COLUMNS = (
    "Company",
    "Website",
    "LinkedIn",
    "Amount",
    "Funding Round",
    "Industry",
    "Description",
    "Source Link",
    "Investors",
    "Funding Date",
    "Last Updated",
)
COMPANY_COLUMN = 0
ROUND_COLUMN = 4
DATE_COLUMN = 9
LAST_COLUMN_LETTER = "K"


@dataclass(frozen=True)
class RowUpdate:
    row_number: int
    values: list[str]


@dataclass
class SyncPlan:
    appends: list[list[str]] = field(default_factory=list)
    updates: list[RowUpdate] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.appends and not self.updates

    def to_payload(self) -> dict[str, object]:
        return {
            "columns": list(SHEET_COLUMNS),
            "appends": self.appends,
            "updates": [{"row_number": update.row_number, "values": update.values} for update in self.updates],
        }


def to_row(record: FundingRecord) -> list[str]:
    """Render a record in the sink's fixed column order."""
    return [
        record.company,
        record.website,
        record.linkedin_url,
        record.amount,
        record.funding_round,
        record.industry,
        record.description,
        record.source_link,
        ", ".join(record.investor_names),
        record.funding_news_date.isoformat(),
        record.last_updated.isoformat() if record.last_updated else "",
    ]


def row_key(row: Sequence[str]) -> str | None:
    """Compute the identity key of an existing sheet row, if it has one."""
    if len(row) <= DATE_COLUMN:
        return None
    company = str(row[COMPANY_COLUMN]).strip()
    raw_date = str(row[DATE_COLUMN]).strip()
    if not company or not raw_date:
        return None
    try:
        reported = date.fromisoformat(raw_date[:10])
    except ValueError:
        return None
    return identity_key(company, str(row[ROUND_COLUMN]), reported)


def index_snapshot(snapshot: Sequence[Sequence[str]], *, header_rows: int = 1) -> dict[str, int]:
    """Map identity keys to 1-based sheet row numbers; the first row wins on duplicates."""
    locations: dict[str, int] = {}
    for offset, row in enumerate(snapshot):
        key = row_key(row)
        if key is None or key in locations:
            continue
        locations[key] = offset + header_rows + 1
    return locations


def build_sync_plan(
    inserted: Iterable[FundingRecord],
    updated: Iterable[FundingRecord],
    snapshot: Sequence[Sequence[str]],
    *,
    header_rows: int = 1,
    previous_keys: Mapping[str, str] | None = None,
) -> SyncPlan:
    """Compute appends for new records and positional updates for changed ones.

    ``snapshot`` holds the sink's data rows without the header rows. ``previous_keys``
    maps a re-keyed record to the key its sheet row was written under.
    """
    previous_keys = previous_keys or {}
    locations = index_snapshot(snapshot, header_rows=header_rows)
    plan = SyncPlan()
    for record in inserted:
        # A row can outlive its history entry (lost or rebuilt history file).
        row_number = locations.get(record.key)
        if row_number is not None:
            plan.updates.append(RowUpdate(row_number=row_number, values=to_row(record)))
            continue
        plan.appends.append(to_row(record))
    for record in updated:
        row_number = locations.get(record.key)
        if row_number is None and record.key in previous_keys:
            row_number = locations.get(previous_keys[record.key])
        if row_number is None:
            logger.warning("sync.update_missing_row", extra={"key": record.key})
            plan.appends.append(to_row(record))
            continue
        plan.updates.append(RowUpdate(row_number=row_number, values=to_row(record)))
    logger.info("sync.plan", extra={"appends": len(plan.appends), "updates": len(plan.updates)})
    return plan
