"""Run one funding-tracker batch: feeds -> extraction -> reconciliation -> sheet sync."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from app.clients.feeds import FeedClientProtocol, FeedError, get_feed_client, parse_mode
from app.clients.sheets import GoogleSheetsClient, SheetsError
from app.config import Settings, load_settings
from app.models.funding import Article, FeedSource, FundingRecord
from app.observability.metrics import MetricsReporter, MetricsSink
from pipelines.funding.classifier import filter_funding_articles
from pipelines.funding.errors import ConfigurationError, FeedFailure, FundingTrackerError, SinkFailure
from pipelines.funding.extractor import FieldExtractor, build_strategies
from pipelines.funding.history import HistoryStore
from pipelines.funding.reconciler import ReconcileResult, reconcile
from pipelines.funding.sync_diff import SyncPlan, build_sync_plan

logger = logging.getLogger("pipelines.funding.run")

SleepFn = Callable[[float], None]
ClockFn = Callable[[], datetime]


class SheetSink(Protocol):
    """Subset of sheet client behavior used by the pipeline."""

    def read_rows(self) -> list[list[str]]:
        ...

    def append_rows(self, rows: Sequence[Sequence[str]]) -> int:
        ...

    def update_row(self, row_number: int, values: Sequence[str]) -> None:
        ...


class SourceRegistry(Protocol):
    """Sheet-backed list of feeds to poll, with a last-checked column."""

    def read_sources(self) -> list[FeedSource]:
        ...

    def update_source_checked(self, row_number: int, checked_at: datetime) -> None:
        ...


@dataclass
class RunOutcome:
    fetched: int = 0
    classified: int = 0
    extracted: int = 0
    result: ReconcileResult = field(default_factory=ReconcileResult)
    plan: SyncPlan | None = None
    sink_synced: bool = False
    sources_checked: int = 0


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def resolve_feed_sources(registry: SourceRegistry | None, feed_urls: Iterable[str]) -> list[FeedSource]:
    """Prefer the sheet's active sources; fall back to FEED_URLS when it is unset, empty or unreadable."""
    sources: list[FeedSource] = []
    if registry is not None:
        try:
            sources = registry.read_sources()
        except SheetsError as exc:
            logger.warning("sources.read_failed", extra={"code": exc.code, "error": str(exc)})
            sources = []
        if not sources:
            logger.info("No active sources in the sheet; using FEED_URLS.")
    if not sources:
        sources = [FeedSource(url=url, source_id=f"env_{index}") for index, url in enumerate(feed_urls) if url]
    unique: dict[str, FeedSource] = {}
    for source in sources:
        unique.setdefault(source.url, source)
    return list(unique.values())


def mark_sources_checked(
    registry: SourceRegistry,
    checked: Sequence[tuple[FeedSource, datetime]],
    *,
    delay_seconds: float = 0.0,
    sleep: SleepFn | None = None,
) -> int:
    """Write last-checked timestamps back to the sheet; a failed write is logged and skipped."""
    sleeper = sleep or time.sleep
    written = 0
    for source, checked_at in checked:
        if source.row_number is None:
            continue
        if written and delay_seconds > 0:
            sleeper(delay_seconds)
        try:
            registry.update_source_checked(source.row_number, checked_at)
        except SheetsError as exc:
            logger.warning(
                "sources.update_failed",
                extra={"source_id": source.source_id, "row_number": source.row_number, "code": exc.code},
            )
            continue
        written += 1
    return written


def _fetch_feed(client: FeedClientProtocol, url: str) -> list[Article]:
    try:
        return client.fetch(url)
    except FeedError as exc:
        raise FeedFailure(f"Feed {url} failed: {exc}", code=exc.code) from exc


def collect_articles(
    client: FeedClientProtocol,
    feed_urls: Iterable[str],
    *,
    metrics: MetricsSink | None = None,
    on_success: Callable[[str], None] | None = None,
) -> list[Article]:
    """Visit each feed in turn; a failing feed is logged and skipped."""
    by_link: dict[str, Article] = {}
    for url in feed_urls:
        try:
            articles = _fetch_feed(client, url)
        except FeedFailure as exc:
            logger.warning("feed.failed", extra={"url": url, "code": exc.code, "error": str(exc)})
            if metrics:
                metrics.increment("feeds.failed", tags={"code": exc.code})
            continue
        for article in articles:
            current = by_link.get(article.link)
            if current is None or article.source_priority > current.source_priority:
                by_link[article.link] = article
        logger.info("Fetched %s articles from %s.", len(articles), url)
        if on_success is not None:
            on_success(url)
    if metrics:
        metrics.gauge("articles.fetched", len(by_link))
    return list(by_link.values())


def extract_records(
    articles: Sequence[Article],
    extractor: FieldExtractor,
    *,
    delay_seconds: float = 0.0,
    sleep: SleepFn | None = None,
    metrics: MetricsSink | None = None,
) -> list[FundingRecord]:
    """Run the extractor over each article, pausing between remote calls."""
    sleeper = sleep or time.sleep
    pause = delay_seconds if extractor.uses_remote else 0.0
    records: list[FundingRecord] = []
    for index, article in enumerate(articles):
        if index and pause > 0:
            sleeper(pause)
        record, strategy = extractor.extract_with_strategy(article)
        if record is None:
            if metrics:
                metrics.increment("extraction.miss")
            continue
        if metrics:
            metrics.increment("extraction.success", tags={"strategy": strategy})
        records.append(record)
    return records


def apply_sync_plan(
    sink: SheetSink,
    plan: SyncPlan,
    *,
    delay_seconds: float = 0.0,
    sleep: SleepFn | None = None,
    metrics: MetricsSink | None = None,
) -> None:
    """Write the plan to the sink, pausing between mutation calls."""
    sleeper = sleep or time.sleep
    calls = 0
    try:
        if plan.appends:
            appended = sink.append_rows(plan.appends)
            calls += 1
            logger.info("sink.append", extra={"rows": appended})
            if metrics:
                metrics.increment("sink.rows_appended", appended)
        for update in plan.updates:
            if calls and delay_seconds > 0:
                sleeper(delay_seconds)
            sink.update_row(update.row_number, update.values)
            calls += 1
            logger.info("sink.update", extra={"row_number": update.row_number, "company": update.values[0]})
            if metrics:
                metrics.increment("sink.rows_updated")
    except SheetsError as exc:
        raise SinkFailure(f"Writing to the sheet failed: {exc}", code=exc.code) from exc


def write_sync_plan(path: Path, plan: SyncPlan) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(plan.to_payload(), indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info("Wrote sync plan to %s.", path)


def run_pipeline(
    *,
    feed_urls: Sequence[str],
    feed_client: FeedClientProtocol,
    extractor: FieldExtractor,
    history: HistoryStore,
    sink: SheetSink | None = None,
    sources: SourceRegistry | None = None,
    as_of: date | None = None,
    delay_seconds: float = 0.0,
    dry_run: bool = False,
    sync_plan_path: Path | None = None,
    sleep: SleepFn | None = None,
    metrics: MetricsSink | None = None,
    clock: ClockFn | None = None,
) -> RunOutcome:
    """Run the batch end to end; history is saved before the sink is touched."""
    as_of = as_of or datetime.now(tz=timezone.utc).date()
    start = time.perf_counter()
    outcome = RunOutcome()

    baseline = history.prune(history.load(), as_of)

    feed_sources = resolve_feed_sources(sources, feed_urls)
    by_url = {source.url: source for source in feed_sources}
    now = clock or _utcnow
    checked: list[tuple[FeedSource, datetime]] = []
    articles = collect_articles(
        feed_client,
        list(by_url),
        metrics=metrics,
        on_success=lambda url: checked.append((by_url[url], now())),
    )
    if sources is not None and checked:
        if dry_run:
            logger.info("Dry run: %s source timestamps not written.", len(checked))
        else:
            outcome.sources_checked = mark_sources_checked(
                sources, checked, delay_seconds=delay_seconds, sleep=sleep
            )
    outcome.fetched = len(articles)
    candidates = filter_funding_articles(articles)
    outcome.classified = len(candidates)
    logger.info("%s of %s articles look funding related.", len(candidates), len(articles))
    if metrics:
        metrics.gauge("articles.classified", len(candidates))

    records = extract_records(candidates, extractor, delay_seconds=delay_seconds, sleep=sleep, metrics=metrics)
    outcome.extracted = len(records)

    outcome.result = reconcile(baseline, records, today=as_of)
    if metrics:
        metrics.increment("reconcile.inserted", len(outcome.result.inserted))
        metrics.increment("reconcile.updated", len(outcome.result.updated))

    if dry_run:
        logger.info("Dry run: history not saved.")
    else:
        history.save(outcome.result.next_history)

    try:
        snapshot: list[list[str]] = []
        if sink is not None:
            try:
                snapshot = sink.read_rows()
            except SheetsError as exc:
                raise SinkFailure(f"Reading the sheet failed: {exc}", code=exc.code) from exc
        outcome.plan = build_sync_plan(
            outcome.result.inserted,
            outcome.result.updated,
            snapshot,
            previous_keys=outcome.result.renamed,
        )
        if sync_plan_path is not None:
            write_sync_plan(sync_plan_path, outcome.plan)

        if sink is None:
            logger.info("No sheet configured; skipping sink sync.")
        elif dry_run:
            logger.info("Dry run: %s appends and %s updates not applied.", len(outcome.plan.appends), len(outcome.plan.updates))
        elif outcome.plan.empty:
            logger.info("No sheet changes to sync.")
        else:
            apply_sync_plan(sink, outcome.plan, delay_seconds=delay_seconds, sleep=sleep, metrics=metrics)
            outcome.sink_synced = True
    finally:
        if metrics:
            metrics.timing("run.latency_ms", (time.perf_counter() - start) * 1000)

    logger.info(
        "Run complete. fetched=%s classified=%s extracted=%s inserted=%s updated=%s",
        outcome.fetched,
        outcome.classified,
        outcome.extracted,
        len(outcome.result.inserted),
        len(outcome.result.updated),
    )
    return outcome


def build_sink(settings: Settings) -> GoogleSheetsClient | None:
    if not settings.sink_configured:
        return None
    try:
        return GoogleSheetsClient.from_service_account(
            settings.google_service_account_key or "",
            settings.spreadsheet_id or "",
            sheet_name=settings.sheet_name,
            sources_sheet_name=settings.sources_sheet_name,
        )
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"{value!r} is not a YYYY-MM-DD date.") from exc


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Ingest funding news and sync reconciled records to a sheet.")
    parser.add_argument("--history", type=Path, default=None, help="History file (default HISTORY_PATH).")
    parser.add_argument("--sync-plan", type=Path, default=None, help="Write the computed sheet plan as JSON.")
    parser.add_argument("--dry-run", action="store_true", help="Do not save history or write to the sheet.")
    parser.add_argument("--require-sink", action="store_true", help="Fail when the sheet is not configured.")
    parser.add_argument("--as-of", type=_iso_date, default=None, help="Override today's date (YYYY-MM-DD).")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint for the funding tracker."""
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        settings = load_settings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
        logger.error("Invalid configuration: %s (code=E_CONFIG)", exc)
        return 1
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    feed_client: FeedClientProtocol | None = None
    try:
        sink = build_sink(settings)
        if sink is None and args.require_sink:
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY and SPREADSHEET_ID are required (--require-sink).")
        try:
            mode = parse_mode(settings.funding_tracker_mode)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc
        feed_client = get_feed_client(
            mode,
            priority_for_host=settings.priority_for_host,
            fixture_path=Path(settings.fixture_articles_path),
            timeout=settings.feed_timeout_seconds,
        )
        run_pipeline(
            feed_urls=settings.feed_urls,
            feed_client=feed_client,
            extractor=FieldExtractor(build_strategies(settings)),
            history=HistoryStore(args.history or Path(settings.history_path), retention_days=settings.retention_days),
            sink=sink,
            sources=sink if settings.sheet_sources_enabled else None,
            as_of=args.as_of,
            delay_seconds=settings.request_delay_seconds,
            dry_run=args.dry_run,
            sync_plan_path=args.sync_plan,
            metrics=MetricsReporter.from_settings(settings),
        )
    except FundingTrackerError as exc:
        logger.error("Funding tracker run failed: %s (code=%s)", exc, exc.code)
        return 1
    except Exception as exc:  # pragma: no cover - safety net
        logger.exception("Unexpected error during funding tracker run: %s", exc)
        return 1
    finally:
        if feed_client is not None:
            feed_client.close()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
