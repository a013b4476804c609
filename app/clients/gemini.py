"""Client for Google's Gemini generative models."""

from __future__ import annotations

from typing import Any

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions


class GeminiError(RuntimeError):
    """Base error for Gemini client failures."""

    def __init__(self, message: str, code: str = "GEMINI_UPSTREAM") -> None:
        super().__init__(message)
        self.code = code


class GeminiClient:
    """Sends a single prompt to Gemini and returns the response text."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gemini-1.5-flash",
        temperature: float = 0.1,
        timeout: float = 30.0,
        model_client: Any | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("GEMINI_API_KEY is required to create a GeminiClient.")
        self.model = model
        self._temperature = temperature
        self._timeout = timeout
        if model_client is None:
            genai.configure(api_key=api_key)
            model_client = genai.GenerativeModel(model)
        self._model = model_client

    def generate(self, prompt: str) -> str:
        try:
            response = self._model.generate_content(
                prompt,
                generation_config=genai.GenerationConfig(temperature=self._temperature),
                request_options={"timeout": self._timeout},
            )
        except google_exceptions.DeadlineExceeded as exc:
            raise GeminiError("Gemini request timed out", code="GEMINI_TIMEOUT") from exc
        except google_exceptions.ResourceExhausted as exc:
            raise GeminiError("Rate limited by Gemini", code="GEMINI_429") from exc
        except google_exceptions.GoogleAPIError as exc:
            raise GeminiError(f"Gemini request failed: {exc}") from exc
        except Exception as exc:  # pragma: no cover - transport errors outside google.api_core
            raise GeminiError(f"Unexpected Gemini failure: {exc}") from exc

        try:
            text = response.text
        except ValueError as exc:  # blocked or empty candidates
            raise GeminiError("Gemini response did not include text output.", code="GEMINI_EMPTY") from exc
        if not text or not text.strip():
            raise GeminiError("Gemini response did not include text output.", code="GEMINI_EMPTY")
        return text.strip()
