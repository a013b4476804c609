"""Domain models for funding announcements and reconciled records."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic.config import ConfigDict

UNKNOWN = "Unknown"
UNDISCLOSED = "Undisclosed"
SENTINELS = frozenset({UNKNOWN.lower(), UNDISCLOSED.lower()})

# Fields a merge may fill or override. Provenance and bookkeeping fields are excluded.
MERGEABLE_FIELDS = (
    "funding_round",
    "website",
    "linkedin_url",
    "amount",
    "investor_names",
    "industry",
    "description",
)


def is_blank(value: Any) -> bool:
    """Return True for empty values and the "Unknown"/"Undisclosed" sentinels."""
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped.lower() in SENTINELS
    if isinstance(value, (list, tuple, set, frozenset)):
        return not any(not is_blank(item) for item in value)
    return False


def normalize_name(value: str | None) -> str:
    """Trim and case-fold a display string for identity comparisons."""
    return (value or "").strip().casefold()


def dedupe_names(names: Iterable[str]) -> list[str]:
    """Keep the first occurrence of each name (case-insensitive), dropping blanks."""
    seen: set[str] = set()
    ordered: list[str] = []
    for name in names:
        cleaned = " ".join(str(name).split())
        if is_blank(cleaned):
            continue
        token = cleaned.casefold()
        if token in seen:
            continue
        seen.add(token)
        ordered.append(cleaned)
    return ordered


def identity_key(company: str, funding_round: str, funding_news_date: date) -> str:
    """Compose the deduplication key for a (company, round, date) triple."""
    return f"{normalize_name(company)}_{normalize_name(funding_round)}_{funding_news_date.isoformat()}"


class Article(BaseModel):
    """A single feed item ready for classification."""

    title: str = Field(..., min_length=1)
    link: str = Field(..., min_length=1)
    description: str = ""
    published: date
    source: str = ""
    source_priority: int = 0

    model_config = ConfigDict(frozen=True)

    @property
    def text(self) -> str:
        return f"{self.title}\n{self.description}".strip()


class FundingRecord(BaseModel):
    """Canonical representation of one real-world funding event."""

    company: str = Field(..., min_length=1)
    funding_round: str = UNKNOWN
    funding_news_date: date
    amount: str = UNDISCLOSED
    investor_names: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("investor_names", "investor_name"),
    )
    website: str = ""
    linkedin_url: str = ""
    industry: str = UNKNOWN
    description: str = ""
    source_link: str = Field(default="", validation_alias=AliasChoices("source_link", "source"))
    source_priority: int = 0
    last_updated: date | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("investor_names", mode="before")
    @classmethod
    def _coerce_investors(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return dedupe_names(value.split(","))
        return dedupe_names(value)

    @property
    def key(self) -> str:
        return identity_key(self.company, self.funding_round, self.funding_news_date)

    @property
    def company_date_key(self) -> str:
        return f"{normalize_name(self.company)}_{self.funding_news_date.isoformat()}"

    def content(self) -> dict[str, Any]:
        """Serialized fields that matter for change detection."""
        return self.model_dump(mode="json", exclude={"last_updated"})


class FeedSource(BaseModel):
    """One feed to poll, from the sheet's source registry or from FEED_URLS."""

    url: str = Field(..., min_length=1)
    source_id: str = ""
    name: str = UNKNOWN
    kind: str = "RSS"
    status: str = "active"
    last_checked: str = ""
    row_number: int | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def active(self) -> bool:
        return self.status.strip().lower() == "active"
