"""Keyword classifier that keeps only articles plausibly about a funding event."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from app.models.funding import Article

logger = logging.getLogger("pipelines.funding.classifier")

FUNDING_KEYWORDS = (
    "raised",
    "raises",
    "raising",
    "funding",
    "series",
    "seed",
    "investment",
    "invested",
    "round",
    "venture capital",
    "vc funding",
    "backed",
    "secures",
    "bags",
    "crore",
    "million",
    "billion",
    "$",
    "₹",
    "€",
    "£",
)


def is_funding_related(title: str | None, description: str | None) -> bool:
    """Return True when the title or description mentions a funding keyword."""
    text = f"{title or ''} {description or ''}".lower()
    return any(keyword in text for keyword in FUNDING_KEYWORDS)


def filter_funding_articles(articles: Iterable[Article]) -> list[Article]:
    """Drop articles that fail the keyword check."""
    kept = [article for article in articles if is_funding_related(article.title, article.description)]
    logger.debug("classifier.filtered", extra={"kept": len(kept)})
    return kept
