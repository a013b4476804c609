"""RSS feed clients for online and fixture modes."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from app.models.funding import Article

logger = logging.getLogger("app.clients.feeds")

USER_AGENT = "Mozilla/5.0 (compatible; FundingTracker/0.1; +https://github.com/)"
PriorityResolver = Callable[[str], int]


class RuntimeMode(str, Enum):
    """Where feed items are read from."""

    ONLINE = "online"
    FIXTURE = "fixture"


class FeedError(RuntimeError):
    """Base error for feed client failures."""

    def __init__(self, message: str, code: str = "FEED_ERROR") -> None:
        super().__init__(message)
        self.code = code


class FeedTimeoutError(FeedError):
    """Raised when a feed request times out."""

    def __init__(self, message: str = "Feed request timed out") -> None:
        super().__init__(message, code="FEED_TIMEOUT")


class FeedParseError(FeedError):
    """Raised when a feed body cannot be parsed."""

    def __init__(self, message: str = "Feed could not be parsed") -> None:
        super().__init__(message, code="FEED_PARSE_ERR")


class FeedClientProtocol(Protocol):
    """Subset of feed client behavior used by the pipeline."""

    def fetch(self, url: str) -> list[Article]:
        ...

    def close(self) -> None:
        ...


def parse_mode(value: str | None, *, default: RuntimeMode = RuntimeMode.ONLINE) -> RuntimeMode:
    if not value:
        return default
    normalized = value.strip().lower()
    for mode in RuntimeMode:
        if normalized == mode.value:
            return mode
    raise ValueError(f"Unsupported FUNDING_TRACKER_MODE value: {value}")


def feed_host(url: str) -> str:
    host = urlparse(url).netloc.lower()
    if ":" in host:
        host = host.split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host


def clean_html(value: str | None) -> str:
    """Strip markup and collapse whitespace in a feed description."""
    if not value:
        return ""
    text = BeautifulSoup(value, "html.parser").get_text(" ", strip=True)
    return " ".join(text.split())


def build_article(
    *,
    title: str | None,
    link: str | None,
    description: str | None,
    published: date | None,
    source: str,
    source_priority: int,
) -> Article | None:
    """Return an Article, or None when the item lacks a title or link once markup is stripped."""
    title_value = clean_html(title)
    link_value = (link or "").strip()
    if not title_value or not link_value:
        return None
    return Article(
        title=title_value,
        link=link_value,
        description=clean_html(description),
        published=published or datetime.now(tz=timezone.utc).date(),
        source=source,
        source_priority=source_priority,
    )


def _entry_date(entry: Mapping[str, Any]) -> date | None:
    for field in ("published_parsed", "updated_parsed"):
        parsed = entry.get(field)
        if parsed and len(parsed) >= 3:
            return date(*parsed[:3])
    return None


class RssFeedClient:
    """Fetches RSS/Atom feeds over HTTP and normalizes their items."""

    def __init__(
        self,
        *,
        priority_for_host: PriorityResolver,
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._priority_for_host = priority_for_host
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def fetch(self, url: str) -> list[Article]:
        try:
            response = self._http.get(url)
        except httpx.TimeoutException as exc:
            raise FeedTimeoutError(f"Timed out fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise FeedError(f"HTTP error fetching {url}: {exc}") from exc
        if response.status_code >= 400:
            raise FeedError(f"Feed request failed: {response.status_code} for {url}", code=f"FEED_{response.status_code}")

        parsed = feedparser.parse(response.text)
        if parsed.bozo and not parsed.entries:
            raise FeedParseError(f"Malformed feed {url}: {parsed.get('bozo_exception')}")

        host = feed_host(url)
        priority = self._priority_for_host(host)
        articles: list[Article] = []
        for entry in parsed.entries:
            try:
                article = build_article(
                    title=entry.get("title"),
                    link=entry.get("link"),
                    description=entry.get("summary") or entry.get("description"),
                    published=_entry_date(entry),
                    source=host,
                    source_priority=priority,
                )
            except (ValidationError, TypeError, ValueError) as exc:
                logger.warning("feed.item_invalid", extra={"url": url, "link": entry.get("link"), "error": str(exc)})
                continue
            if article is not None:
                articles.append(article)
        logger.info("feed.fetched", extra={"url": url, "entries": len(parsed.entries), "articles": len(articles)})
        return articles

    def __enter__(self) -> "RssFeedClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FixtureFeedClient:
    """Reads feed items from a local JSON file keyed by feed URL."""

    def __init__(self, path: Path, *, priority_for_host: PriorityResolver) -> None:
        self._path = Path(path)
        self._priority_for_host = priority_for_host
        self._payload: dict[str, Any] | None = None

    def close(self) -> None:
        return None

    def fetch(self, url: str) -> list[Article]:
        items = self._load().get(url)
        if items is None:
            raise FeedError(f"Fixture has no items for {url}", code="FEED_FIXTURE_MISSING")
        host = feed_host(url)
        priority = self._priority_for_host(host)
        articles: list[Article] = []
        for item in items:
            try:
                published = date.fromisoformat(str(item.get("published", ""))[:10]) if item.get("published") else None
            except ValueError:
                published = None
            try:
                article = build_article(
                    title=item.get("title"),
                    link=item.get("link"),
                    description=item.get("description"),
                    published=published,
                    source=item.get("source") or host,
                    source_priority=int(item.get("source_priority", priority)),
                )
            except (ValidationError, TypeError, ValueError) as exc:
                raise FeedParseError(f"Invalid fixture item in {self._path}: {exc}") from exc
            if article is not None:
                articles.append(article)
        return articles

    def _load(self) -> dict[str, Any]:
        if self._payload is None:
            if not self._path.exists():
                raise FeedError(f"Fixture not found: {self._path}", code="FEED_FIXTURE_MISSING")
            try:
                payload = json.loads(self._path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as exc:
                raise FeedParseError(f"Fixture {self._path} is not valid JSON: {exc}") from exc
            if not isinstance(payload, dict):
                raise FeedParseError(f"Fixture {self._path} must map feed URLs to item lists.")
            self._payload = payload
        return self._payload


def get_feed_client(
    mode: RuntimeMode,
    *,
    priority_for_host: PriorityResolver,
    fixture_path: Path | None = None,
    timeout: float = 15.0,
) -> FeedClientProtocol:
    """Return an appropriate feed client implementation."""
    if mode is RuntimeMode.FIXTURE:
        if fixture_path is None:
            raise ValueError("A fixture path is required in fixture mode.")
        return FixtureFeedClient(fixture_path, priority_for_host=priority_for_host)
    return RssFeedClient(priority_for_host=priority_for_host, timeout=timeout)
