from datetime import date

import pytest

from pipelines.funding import heuristics
from pipelines.funding.heuristics import HeuristicStrategy


@pytest.mark.parametrize(
    ("title", "expected"),
    [
        ("Zypp raises $3M to expand EV fleet", "Zypp"),
        ("Acme Robotics secures funding from Accel", "Acme Robotics"),
        ("Bolt Series B led by Tiger Global", "Bolt"),
        ("Finova $12M round for lending platform", "Finova"),
    ],
)
def test_parse_company_uses_headline_patterns(title, expected):
    assert heuristics.parse_company(title) == expected


def test_parse_company_falls_back_to_title_prefix():
    title = "A long feature story about the state of venture capital in India this year"
    assert heuristics.parse_company(title) == title[:50].strip()


def test_parse_amount_returns_last_mention():
    text = "The company, which raised $1M last year, has now raised $12.5M in new funding."
    assert heuristics.parse_amount(text) == "$12.5M"


def test_parse_amount_units_and_defaults():
    assert heuristics.parse_amount("raised $2 billion") == "$2B"
    assert heuristics.parse_amount("raised $500K from angels") == "$500K"
    assert heuristics.parse_amount("raised $7 to buy lunch") == "$7M"
    assert heuristics.parse_amount("no numbers here") == "Undisclosed"


def test_parse_amount_handles_crore():
    assert heuristics.parse_amount("Zypp bags ₹40 crore in Series A") == "₹40 Cr"
    assert heuristics.parse_amount("raised Rs 120 crore from investors") == "₹120 Cr"


def test_parse_round_canonicalizes():
    assert heuristics.parse_round("raised a pre-seed round") == "Pre-Seed"
    assert heuristics.parse_round("announced its series  c today") == "Series C"
    assert heuristics.parse_round("angel investors joined") == "Angel"
    assert heuristics.parse_round("no round mentioned") == "Unknown"


def test_canonical_round_keeps_unrecognized_labels_title_cased():
    assert heuristics.canonical_round("growth equity") == "Growth Equity"
    assert heuristics.canonical_round("n/a") == "Unknown"
    assert heuristics.canonical_round("Series A round") == "Series A"


def test_parse_investors_handles_overlapping_triggers():
    text = (
        "The round was led by Sequoia Capital and Accel, with participation from Y Combinator "
        "and existing investors."
    )
    assert heuristics.parse_investors(text) == ["Sequoia Capital", "Accel", "Y Combinator"]


def test_parse_investors_caps_and_dedupes():
    text = "backed by Alpha Fund, Beta Fund, Gamma Fund, Delta Fund, Epsilon Fund, Zeta Fund. Led by Alpha Fund."
    assert heuristics.parse_investors(text) == ["Alpha Fund", "Beta Fund", "Gamma Fund", "Delta Fund", "Epsilon Fund"]


def test_parse_investors_skips_short_names():
    assert heuristics.parse_investors("led by AB and Lightspeed") == ["Lightspeed"]


def test_parse_industry_matches_whole_words():
    assert heuristics.parse_industry("An AI startup for lawyers") == "AI/ML"
    assert heuristics.parse_industry("The founder said the payments app grew") == "FinTech"
    assert heuristics.parse_industry("A maker of garden furniture") == "Technology"


def test_linkedin_slug():
    assert heuristics.linkedin_slug("Acme  Robotics, Inc.") == "acme-robotics-inc"
    assert heuristics.linkedin_url("Zypp") == "https://linkedin.com/company/zypp"


def test_heuristic_strategy_builds_record(make_article):
    article = make_article()

    record = HeuristicStrategy().try_extract(article)

    assert record is not None
    assert record.company == "Zypp"
    assert record.funding_round == "Seed"
    assert record.amount == "$3M"
    assert record.investor_names == ["Sequoia Capital"]
    assert record.industry == "ClimateTech"
    assert record.funding_news_date == date(2024, 1, 5)
    assert record.source_priority == 5
    assert record.source_link == article.link


def test_currency_company_pattern_requires_capitalized_name():
    assert heuristics.parse_company("Finova Rs 40 crore round") == "Finova"
    assert heuristics.parse_company("Finova INR 40 crore round") == "Finova"
    title = "startup $5M for widgets"
    assert heuristics.parse_company(title) == title
