from __future__ import annotations

import json
from typing import Annotated

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings, NoDecode

DEFAULT_FEED_URLS = [
    "https://techcrunch.com/tag/funding/feed/",
    "https://www.crunchbase.com/feed",
    "https://yourstory.com/feed",
    "https://inc42.com/feed/",
]

DEFAULT_SOURCE_PRIORITIES = {
    "techcrunch.com": 5,
    "crunchbase.com": 4,
    "yourstory.com": 3,
    "inc42.com": 2,
    "venturebeat.com": 1,
}


class Settings(BaseSettings):
    """Runtime settings loaded once from environment variables."""

    # Application
    app_name: str = "Funding Tracker"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    funding_tracker_mode: str = "online"
    fixture_articles_path: str = "fixtures/articles.json"

    # Feeds
    feed_urls: Annotated[list[str], NoDecode] = list(DEFAULT_FEED_URLS)
    source_priorities: dict[str, int] = dict(DEFAULT_SOURCE_PRIORITIES)
    default_source_priority: int = 0
    feed_timeout_seconds: float = 15.0

    # Providers
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-1.5-flash"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    provider_timeout_seconds: float = 30.0
    extraction_temperature: float = 0.1

    # Sink
    google_service_account_key: str | None = None
    spreadsheet_id: str | None = None
    sheet_name: str = "Funding_Data"
    sources_sheet_name: str = "Sources"
    sheet_sources_enabled: bool = True

    # History / scheduling
    history_path: str = "history.json"
    retention_days: int = 30
    request_delay_seconds: float = 1.5

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "funding_tracker"
    metrics_disable: bool = False
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    @field_validator("feed_urls", mode="before")
    @classmethod
    def _split_feed_urls(cls, value):
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                return json.loads(stripped)
            return [part.strip() for part in stripped.split(",") if part.strip()]
        return value

    @field_validator("retention_days")
    @classmethod
    def _positive_retention(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("RETENTION_DAYS must be greater than zero.")
        return value

    @field_validator("request_delay_seconds")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("REQUEST_DELAY_SECONDS must be >= 0.")
        return value

    @property
    def sink_configured(self) -> bool:
        """Return True when both sheet credentials and id are present."""
        return bool(self.google_service_account_key and self.spreadsheet_id)

    def priority_for_host(self, host: str) -> int:
        """Resolve the trust rank for a feed host, ignoring a leading www."""
        normalized = host.lower()
        if normalized.startswith("www."):
            normalized = normalized[4:]
        return self.source_priorities.get(normalized, self.default_source_priority)

    model_config = ConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


def load_settings(**overrides) -> Settings:
    """Build the settings value once at process start."""
    return Settings(**overrides)
