"""Ordered extraction strategies that turn one article into a FundingRecord."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import date
from typing import Any, Protocol

from app.clients.gemini import GeminiClient, GeminiError
from app.clients.openai_client import OpenAIClient, OpenAIClientError
from app.config import Settings
from app.models.funding import UNDISCLOSED, UNKNOWN, Article, FundingRecord, is_blank
from pipelines.funding.errors import ExtractionFailure
from pipelines.funding.heuristics import DESCRIPTION_LIMIT, HeuristicStrategy, canonical_round, linkedin_url

logger = logging.getLogger("pipelines.funding.extractor")

PROMPT_DESCRIPTION_LIMIT = 1500
MIN_COMPANY_LENGTH = 2

EXTRACTION_PROMPT = """Analyze this funding news article and extract the following information in JSON format:

Article Title: {title}
Description: {description}
Source: {source}

Please extract:
1. company_name: The name of the company that received funding
2. website: The company's website URL (if mentioned)
3. funding_round: The type of funding round (Pre-Seed, Seed, Series A, Series B, etc.)
4. funding_amount: The amount of funding (with currency symbol)
5. investor_names: List of investor names (individuals or companies)
6. industry: The industry/sector of the company
7. description: A brief one-line description of what the company does
8. funding_date: The date when the funding was announced (YYYY-MM-DD format)

If any information is not available in the article, use "Unknown" or leave blank.

Return ONLY a single valid JSON object, no other text.
"""


class ExtractionStrategy(Protocol):
    """Capability shared by every extraction strategy."""

    name: str

    def try_extract(self, article: Article) -> FundingRecord | None:
        ...


class TextGenerationClient(Protocol):
    """Minimal contract for generative-text providers."""

    def generate(self, prompt: str) -> str:
        ...


def render_prompt(article: Article) -> str:
    return EXTRACTION_PROMPT.format(
        title=article.title,
        description=article.description[:PROMPT_DESCRIPTION_LIMIT],
        source=article.source or article.link,
    )


def parse_json_object(raw_text: str) -> dict[str, Any]:
    """Decode the first balanced JSON object, tolerating code fences or prose."""
    candidate = raw_text.strip()
    if "```" in candidate:
        candidate = "\n".join(line for line in candidate.splitlines() if not line.strip().startswith("```"))
    start = candidate.find("{")
    while start != -1:
        end = _balanced_end(candidate, start)
        if end == -1:
            break
        try:
            payload = json.loads(candidate[start : end + 1])
        except json.JSONDecodeError:
            start = candidate.find("{", start + 1)
            continue
        if isinstance(payload, dict):
            return payload
        start = candidate.find("{", end + 1)
    raise ValueError("Response did not contain a JSON object.")


def _balanced_end(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def _text_field(payload: dict[str, Any], *names: str) -> str:
    for name in names:
        value = payload.get(name)
        if value is None:
            continue
        if isinstance(value, (int, float)):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return " ".join(value.split())
    return ""


def _investor_field(payload: dict[str, Any]) -> list[str]:
    value = payload.get("investor_names", payload.get("investors"))
    if value is None:
        return []
    if isinstance(value, str):
        parts: list[str] = []
        for chunk in value.split(","):
            parts.extend(chunk.split(" and "))
        return [part.strip() for part in parts]
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None]
    return []


def _parse_date(value: str, fallback: date) -> date:
    if not value:
        return fallback
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return fallback


def payload_to_record(payload: dict[str, Any], article: Article) -> FundingRecord:
    """Validate a provider payload and fill missing fields with sentinels."""
    company = _text_field(payload, "company_name", "company")
    if is_blank(company) or len(company) < MIN_COMPANY_LENGTH:
        raise ExtractionFailure(f"Provider returned an unusable company name: {company!r}", code="E_EXTRACTION_INVALID")

    amount = _text_field(payload, "funding_amount", "amount")
    industry = _text_field(payload, "industry")
    description = _text_field(payload, "description")
    return FundingRecord(
        company=company,
        funding_round=canonical_round(_text_field(payload, "funding_round", "round")),
        funding_news_date=_parse_date(_text_field(payload, "funding_date", "date"), article.published),
        amount=UNDISCLOSED if is_blank(amount) else amount,
        investor_names=_investor_field(payload),
        website="" if is_blank(_text_field(payload, "website")) else _text_field(payload, "website"),
        linkedin_url=linkedin_url(company),
        industry=UNKNOWN if is_blank(industry) else industry,
        description=description or article.description[:DESCRIPTION_LIMIT].strip(),
        source_link=article.link,
        source_priority=article.source_priority,
    )


class GenerativeStrategy:
    """Asks a text-generation provider for the eight funding fields."""

    def __init__(self, name: str, client: TextGenerationClient) -> None:
        self.name = name
        self._client = client

    @property
    def remote(self) -> bool:
        return True

    def try_extract(self, article: Article) -> FundingRecord | None:
        try:
            response_text = self._client.generate(render_prompt(article))
        except (GeminiError, OpenAIClientError) as exc:
            raise ExtractionFailure(f"{self.name} request failed: {exc}", code=exc.code) from exc
        try:
            payload = parse_json_object(response_text)
        except ValueError as exc:
            raise ExtractionFailure(f"{self.name} response was not valid JSON.", code="E_EXTRACTION_JSON") from exc
        return payload_to_record(payload, article)


class FieldExtractor:
    """Tries each strategy in order and returns the first record produced."""

    def __init__(self, strategies: Sequence[ExtractionStrategy]) -> None:
        if not strategies:
            raise ValueError("At least one extraction strategy is required.")
        self._strategies = list(strategies)

    @property
    def strategy_names(self) -> list[str]:
        return [strategy.name for strategy in self._strategies]

    @property
    def uses_remote(self) -> bool:
        return any(getattr(strategy, "remote", False) for strategy in self._strategies)

    def extract(self, article: Article) -> FundingRecord | None:
        record, _ = self.extract_with_strategy(article)
        return record

    def extract_with_strategy(self, article: Article) -> tuple[FundingRecord | None, str | None]:
        for strategy in self._strategies:
            try:
                record = strategy.try_extract(article)
            except ExtractionFailure as exc:
                logger.warning(
                    "extraction.strategy_failed",
                    extra={"strategy": strategy.name, "code": exc.code, "link": article.link, "error": str(exc)},
                )
                continue
            if record is not None:
                return record, strategy.name
        logger.info("extraction.exhausted", extra={"link": article.link, "title": article.title[:120]})
        return None, None


def build_strategies(settings: Settings) -> list[ExtractionStrategy]:
    """Assemble the ranked strategy list from configured credentials."""
    strategies: list[ExtractionStrategy] = []
    if settings.gemini_api_key:
        strategies.append(
            GenerativeStrategy(
                "gemini",
                GeminiClient(
                    settings.gemini_api_key,
                    model=settings.gemini_model,
                    temperature=settings.extraction_temperature,
                    timeout=settings.provider_timeout_seconds,
                ),
            )
        )
    if settings.openai_api_key:
        strategies.append(
            GenerativeStrategy(
                "openai",
                OpenAIClient(
                    settings.openai_api_key,
                    model=settings.openai_model,
                    temperature=settings.extraction_temperature,
                    timeout=settings.provider_timeout_seconds,
                ),
            )
        )
    strategies.append(HeuristicStrategy())
    logger.info("Extraction strategies: %s", ", ".join(strategy.name for strategy in strategies))
    return strategies
