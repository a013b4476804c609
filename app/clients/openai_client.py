"""Thin wrapper around the OpenAI Responses API used for field extraction."""

from __future__ import annotations

from typing import Any

from openai import APITimeoutError, OpenAI, OpenAIError, RateLimitError


class OpenAIClientError(RuntimeError):
    """Base error for OpenAI client failures."""

    def __init__(self, message: str, code: str = "OPENAI_UPSTREAM") -> None:
        super().__init__(message)
        self.code = code


class OpenAIClient:
    """Sends a single prompt and returns the response text."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        timeout: float = 30.0,
        client: Any | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required to create an OpenAIClient.")
        self.model = model
        self._temperature = temperature
        self._client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def generate(self, prompt: str) -> str:
        try:
            response = self._client.responses.create(
                model=self.model,
                temperature=self._temperature,
                input=[{"role": "user", "content": prompt}],
            )
        except APITimeoutError as exc:
            raise OpenAIClientError("OpenAI request timed out", code="OPENAI_TIMEOUT") from exc
        except RateLimitError as exc:
            raise OpenAIClientError("Rate limited by OpenAI", code="OPENAI_429") from exc
        except OpenAIError as exc:
            message = getattr(exc, "message", str(exc))
            raise OpenAIClientError(f"OpenAI request failed: {message}") from exc
        except Exception as exc:  # pragma: no cover - defensive
            raise OpenAIClientError(f"Unexpected OpenAI failure: {exc}") from exc
        return _extract_response_text(response)


def _extract_response_text(response: Any) -> str:
    """Normalize OpenAI responses across SDK versions."""
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    text_chunks: list[str] = []
    for item in getattr(response, "output", None) or []:
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                text_chunks.append(getattr(content, "text", ""))
    if text_chunks:
        return "".join(text_chunks).strip()

    choices = getattr(response, "choices", None)
    if choices:  # ChatCompletions fallback
        content = getattr(choices[0].message, "content", "")
        if isinstance(content, str) and content.strip():
            return content.strip()

    raise OpenAIClientError("OpenAI response did not include text output.", code="OPENAI_EMPTY")
