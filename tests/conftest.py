from datetime import date

import pytest

from app.models.funding import Article, FundingRecord


@pytest.fixture
def make_article():
    """Factory for feed articles with sensible defaults."""

    def _make(**overrides) -> Article:
        payload = {
            "title": "Zypp raises $3M Seed round led by Sequoia Capital",
            "link": "https://techcrunch.com/2024/01/05/zypp-seed",
            "description": "Zypp, an EV logistics startup, raised $3M in a Seed round led by Sequoia Capital.",
            "published": date(2024, 1, 5),
            "source": "techcrunch.com",
            "source_priority": 5,
        }
        payload.update(overrides)
        return Article(**payload)

    return _make


@pytest.fixture
def make_record():
    """Factory for funding records with sensible defaults."""

    def _make(**overrides) -> FundingRecord:
        payload = {
            "company": "Zypp",
            "funding_round": "Seed",
            "funding_news_date": date(2024, 1, 5),
            "amount": "Undisclosed",
            "investor_names": [],
            "website": "",
            "industry": "ClimateTech",
            "description": "EV logistics",
            "source_link": "https://example.com/zypp",
            "source_priority": 5,
        }
        payload.update(overrides)
        return FundingRecord(**payload)

    return _make
