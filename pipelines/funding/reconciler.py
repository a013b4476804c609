"""Priority-ranked reconciliation of candidate records against the history."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date

from app.models.funding import MERGEABLE_FIELDS, FundingRecord, is_blank

logger = logging.getLogger("pipelines.funding.reconciler")


@dataclass
class ReconcileResult:
    inserted: list[FundingRecord] = field(default_factory=list)
    updated: list[FundingRecord] = field(default_factory=list)
    unchanged: list[FundingRecord] = field(default_factory=list)
    discarded: int = 0
    next_history: dict[str, FundingRecord] = field(default_factory=dict)
    # current key -> key the record was stored under before this batch
    renamed: dict[str, str] = field(default_factory=dict)

    def summary(self) -> dict[str, int]:
        return {
            "inserted": len(self.inserted),
            "updated": len(self.updated),
            "unchanged": len(self.unchanged),
            "discarded": self.discarded,
            "history": len(self.next_history),
        }


def merge_records(primary: FundingRecord, secondary: FundingRecord) -> FundingRecord:
    """Start from ``primary`` and back-fill only its blank fields from ``secondary``."""
    updates = {
        name: getattr(secondary, name)
        for name in MERGEABLE_FIELDS
        if is_blank(getattr(primary, name)) and not is_blank(getattr(secondary, name))
    }
    if not updates:
        return primary
    return primary.model_copy(update=updates)


def _resolve_key(
    record: FundingRecord,
    history: Mapping[str, FundingRecord],
    company_dates: Mapping[str, list[str]],
) -> str:
    """Use the record's key, or the single same-company same-day entry when either side lacks a round."""
    key = record.key
    if key in history:
        return key
    candidates = company_dates.get(record.company_date_key, [])
    if len(candidates) != 1:
        return key
    if is_blank(record.funding_round) or is_blank(history[candidates[0]].funding_round):
        return candidates[0]
    return key


def reconcile(
    existing: Mapping[str, FundingRecord],
    incoming: Iterable[FundingRecord],
    *,
    today: date,
) -> ReconcileResult:
    """Insert new events, merge known ones, and drop lower-priority duplicates."""
    history = dict(existing)
    company_dates: dict[str, list[str]] = {}
    for key, record in history.items():
        company_dates.setdefault(record.company_date_key, []).append(key)

    inserted: dict[str, FundingRecord] = {}
    updated: dict[str, FundingRecord] = {}
    unchanged: list[FundingRecord] = []
    renamed: dict[str, str] = {}
    discarded = 0

    for record in incoming:
        key = _resolve_key(record, history, company_dates)
        current = history.get(key)

        if current is None:
            stamped = record.model_copy(update={"last_updated": today})
            history[key] = stamped
            inserted[key] = stamped
            company_dates.setdefault(record.company_date_key, []).append(key)
            logger.debug("reconcile.inserted", extra={"key": key})
            continue

        if record.source_priority > current.source_priority:
            candidate = merge_records(record, current)
        elif record.source_priority == current.source_priority:
            candidate = merge_records(current, record)
        else:
            discarded += 1
            logger.debug(
                "reconcile.discarded",
                extra={"key": key, "incoming": record.source_priority, "existing": current.source_priority},
            )
            continue

        if candidate.content() == current.content():
            unchanged.append(current)
            continue

        stamped = candidate.model_copy(update={"last_updated": today})
        new_key = stamped.key
        if new_key != key and new_key not in history:
            # A filled-in round moves the entry to its full identity key.
            del history[key]
            siblings = company_dates[current.company_date_key]
            siblings[siblings.index(key)] = new_key
            if key in inserted:
                del inserted[key]
                inserted[new_key] = stamped
            else:
                updated.pop(key, None)
                renamed[new_key] = renamed.pop(key, key)
            logger.debug("reconcile.rekeyed", extra={"key": new_key, "previous_key": key})
            key = new_key
        history[key] = stamped
        if key in inserted:
            inserted[key] = stamped
        else:
            updated[key] = stamped
        logger.debug("reconcile.updated", extra={"key": key})

    result = ReconcileResult(
        inserted=list(inserted.values()),
        updated=list(updated.values()),
        unchanged=unchanged,
        discarded=discarded,
        next_history=history,
        renamed=renamed,
    )
    logger.info("reconcile.summary", extra=result.summary())
    return result
