import pytest
from pydantic import ValidationError

from app.config import DEFAULT_FEED_URLS, Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_defaults(monkeypatch):
    monkeypatch.delenv("FEED_URLS", raising=False)
    monkeypatch.delenv("RETENTION_DAYS", raising=False)

    settings = _settings()

    assert settings.feed_urls == DEFAULT_FEED_URLS
    assert settings.retention_days == 30
    assert settings.sheet_name == "Funding_Data"
    assert not settings.sink_configured


def test_feed_urls_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("FEED_URLS", "https://a.example/feed, https://b.example/rss ,")

    assert _settings().feed_urls == ["https://a.example/feed", "https://b.example/rss"]


def test_feed_urls_from_json_env(monkeypatch):
    monkeypatch.setenv("FEED_URLS", '["https://a.example/feed"]')

    assert _settings().feed_urls == ["https://a.example/feed"]


def test_priority_for_host_ignores_www():
    settings = _settings(source_priorities={"techcrunch.com": 5}, default_source_priority=1)

    assert settings.priority_for_host("www.TechCrunch.com") == 5
    assert settings.priority_for_host("unknown.example") == 1


def test_sink_configured_requires_key_and_sheet():
    assert not _settings(spreadsheet_id="abc", google_service_account_key=None).sink_configured
    assert _settings(spreadsheet_id="abc", google_service_account_key="{}").sink_configured


@pytest.mark.parametrize("overrides", [{"retention_days": 0}, {"request_delay_seconds": -1}])
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValidationError):
        _settings(**overrides)
