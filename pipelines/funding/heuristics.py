"""Deterministic regex heuristics for pulling funding fields out of article text."""

from __future__ import annotations

import logging
import re

from app.models.funding import UNDISCLOSED, UNKNOWN, Article, FundingRecord, dedupe_names

logger = logging.getLogger("pipelines.funding.heuristics")

COMPANY_PATTERNS = (
    re.compile(
        r"^([A-Za-z0-9][A-Za-z0-9&.'\- ]*?)\s+(?:raises|raised|secures|secured|announces|closes|gets|bags|lands)\b",
        flags=re.IGNORECASE,
    ),
    re.compile(r"^([A-Za-z0-9][A-Za-z0-9&.'\- ]*?)\s+series\s+[a-e]\b", flags=re.IGNORECASE),
    re.compile(r"^([A-Z][A-Za-z0-9&.'\- ]*?)\s+(?:\$|₹|(?i:rs)\.?\s?|(?i:inr)\s?)\d"),
)
COMPANY_FALLBACK_LENGTH = 50

DOLLAR_PATTERN = re.compile(
    r"\$\s?(\d+(?:,\d{3})*(?:\.\d+)?)\s?(billion|million|thousand|bn|mn|b|m|k)?\b",
    flags=re.IGNORECASE,
)
RUPEE_PATTERN = re.compile(
    r"(?:(?:₹|rs\.?|inr)\s?)?(\d+(?:,\d{2,3})*(?:\.\d+)?)\s?(crore|cr|lakh)\b",
    flags=re.IGNORECASE,
)
_DOLLAR_UNITS = {
    "billion": "B",
    "bn": "B",
    "b": "B",
    "million": "M",
    "mn": "M",
    "m": "M",
    "thousand": "K",
    "k": "K",
}

ROUND_PATTERN = re.compile(r"\b(pre[\s-]?seed|seed|series\s+[a-e]|angel|bridge)\b", flags=re.IGNORECASE)
ROUND_VOCABULARY = {
    "pre-seed": "Pre-Seed",
    "preseed": "Pre-Seed",
    "pre seed": "Pre-Seed",
    "seed": "Seed",
    "series a": "Series A",
    "series b": "Series B",
    "series c": "Series C",
    "series d": "Series D",
    "series e": "Series E",
    "bridge": "Bridge",
    "angel": "Angel",
}

# Zero-width so overlapping triggers ("led by X, with participation from Y") each match.
INVESTOR_TRIGGER_PATTERN = re.compile(
    r"(?=(?:led by|backed by|investors includ(?:ed|ing|e)|participation from)\s+([^.;:\n]+))",
    flags=re.IGNORECASE,
)
INVESTOR_SPLIT_PATTERN = re.compile(r",|\s+and\s+")
MAX_INVESTORS = 5
MIN_INVESTOR_LENGTH = 3
MAX_INVESTOR_LENGTH = 49

INDUSTRY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("AI/ML", ("artificial intelligence", "machine learning", "ai", "ml", "neural", "deep learning", "genai")),
    ("FinTech", ("fintech", "finance", "banking", "payment", "payments", "crypto", "blockchain", "web3", "lending")),
    ("HealthTech", ("healthcare", "health", "medical", "biotech", "pharma", "wellness", "telemedicine")),
    ("SaaS", ("saas", "software", "cloud", "platform")),
    ("E-commerce", ("ecommerce", "e-commerce", "retail", "shopping", "marketplace", "d2c")),
    ("EdTech", ("education", "edtech", "learning", "online course")),
    ("ClimateTech", ("climate", "energy", "sustainability", "green", "ev", "electric vehicle")),
    ("Social", ("social", "community", "network")),
)
DEFAULT_INDUSTRY = "Technology"
_INDUSTRY_PATTERNS = tuple(
    (industry, tuple(re.compile(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])") for keyword in keywords))
    for industry, keywords in INDUSTRY_KEYWORDS
)

DESCRIPTION_LIMIT = 200
LINKEDIN_BASE_URL = "https://linkedin.com/company/"


def canonical_round(value: str | None) -> str:
    """Map free-text round labels onto the round vocabulary."""
    if not value:
        return UNKNOWN
    collapsed = " ".join(value.strip().lower().replace("_", " ").split())
    if not collapsed:
        return UNKNOWN
    if collapsed in ROUND_VOCABULARY:
        return ROUND_VOCABULARY[collapsed]
    match = ROUND_PATTERN.search(collapsed)
    if match:
        return ROUND_VOCABULARY.get(" ".join(match.group(1).lower().split()), UNKNOWN)
    if collapsed in {"unknown", "n/a", "none", "undisclosed"}:
        return UNKNOWN
    return value.strip().title()


def parse_company(title: str) -> str:
    """Pull the company name from a headline, falling back to its first 50 characters."""
    headline = " ".join((title or "").split())
    for pattern in COMPANY_PATTERNS:
        match = pattern.search(headline)
        if match and match.group(1).strip():
            return match.group(1).strip(" -")
    return headline[:COMPANY_FALLBACK_LENGTH].strip()


def parse_amount(text: str) -> str:
    """Return the last currency amount mentioned in the text."""
    last_match: tuple[int, str] | None = None
    for match in DOLLAR_PATTERN.finditer(text):
        value, unit = match.group(1), match.group(2)
        if unit:
            suffix = _DOLLAR_UNITS[unit.lower()]
        else:
            suffix = "" if "," in value else "M"
        candidate = (match.start(), f"${value}{suffix}")
        if last_match is None or candidate[0] >= last_match[0]:
            last_match = candidate
    for match in RUPEE_PATTERN.finditer(text):
        value, unit = match.group(1), match.group(2).lower()
        label = "Lakh" if unit == "lakh" else "Cr"
        candidate = (match.start(), f"₹{value} {label}")
        if last_match is None or candidate[0] >= last_match[0]:
            last_match = candidate
    return last_match[1] if last_match else UNDISCLOSED


def parse_round(text: str) -> str:
    """Detect the first funding round keyword."""
    match = ROUND_PATTERN.search(text)
    if not match:
        return UNKNOWN
    return canonical_round(match.group(1))


def parse_investors(text: str) -> list[str]:
    """Collect capitalized investor names following trigger phrases."""
    names: list[str] = []
    for match in INVESTOR_TRIGGER_PATTERN.finditer(text):
        for part in INVESTOR_SPLIT_PATTERN.split(match.group(1)):
            name = _leading_capitalized(part)
            if MIN_INVESTOR_LENGTH <= len(name) <= MAX_INVESTOR_LENGTH:
                names.append(name)
    return dedupe_names(names)[:MAX_INVESTORS]


def _leading_capitalized(fragment: str) -> str:
    tokens: list[str] = []
    for token in fragment.strip().split():
        if token[:1].isupper() or token[:1].isdigit() or token == "&":
            tokens.append(token)
            continue
        break
    return " ".join(tokens).strip(" ,&'\"()")


def parse_industry(text: str) -> str:
    """Return the first industry whose keyword appears as a whole word."""
    lowered = text.lower()
    for industry, patterns in _INDUSTRY_PATTERNS:
        if any(pattern.search(lowered) for pattern in patterns):
            return industry
    return DEFAULT_INDUSTRY


def linkedin_slug(company: str) -> str:
    slug = re.sub(r"\s+", "-", company.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def linkedin_url(company: str) -> str:
    slug = linkedin_slug(company)
    return f"{LINKEDIN_BASE_URL}{slug}" if slug else ""


class HeuristicStrategy:
    """Regex fallback that never calls out to a provider."""

    name = "heuristic"

    def try_extract(self, article: Article) -> FundingRecord | None:
        text = article.text
        company = parse_company(article.title)
        if len(company) < 2:
            logger.debug("heuristic.no_company", extra={"link": article.link})
            return None
        return FundingRecord(
            company=company,
            funding_round=parse_round(text),
            funding_news_date=article.published,
            amount=parse_amount(text),
            investor_names=parse_investors(text),
            website="",
            linkedin_url=linkedin_url(company),
            industry=parse_industry(text),
            description=article.description[:DESCRIPTION_LIMIT].strip(),
            source_link=article.link,
            source_priority=article.source_priority,
        )
