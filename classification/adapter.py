"""AI adapters for batch keyword intent classification.

Provides a base interface and concrete adapters for OpenAI-compatible
APIs and a deterministic mock for testing. Adapters translate SDK
failures into ``ExternalServiceError`` so the resilience layer only ever
sees classified errors.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from classification.prompt_builder import SYSTEM_PROMPT, build_classification_prompt
from resilience.errors import ExternalErrorKind, ExternalServiceError, kind_from_status

AI_SERVICE_NAME = "intent_ai"


class BaseIntentAdapter(ABC):
    """Abstract base for all intent classification adapters."""

    service_name: str = AI_SERVICE_NAME

    @abstractmethod
    def classify_keywords(self, keywords: Sequence[str]) -> str:
        """Send one batch of keywords to the AI service.

        Args:
            keywords: Keywords to classify, already de-duplicated.

        Returns:
            Raw string response from the model (expected to be JSON).

        Raises:
            ExternalServiceError: On any transport or API failure.
        """


class OpenAIIntentAdapter(BaseIntentAdapter):
    """Adapter for OpenAI-compatible chat completion APIs.

    Configured for deterministic, non-streaming JSON output.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 4096,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            max_tokens: Maximum tokens in the completion.
            api_key: API key. Falls back to OPENAI_API_KEY env var.
            base_url: Optional base URL for OpenAI-compatible endpoints.
        """
        try:
            import openai  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "openai package is required for OpenAIIntentAdapter. "
                "Install it with: pip install openai"
            ) from exc

        resolved_key = api_key or os.environ.get("OPENAI_API_KEY", "")
        client_kwargs: dict = {"api_key": resolved_key, "max_retries": 0}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._sdk = openai
        self._client = openai.OpenAI(**client_kwargs)
        self._model = model
        self._max_tokens = max_tokens

    def classify_keywords(self, keywords: Sequence[str]) -> str:
        """Call the chat completion API for one keyword batch.

        SDK retries are disabled; retry policy belongs to the caller.
        """
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_classification_prompt(keywords)},
                ],
                temperature=0,
                top_p=1,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
                stream=False,
            )
        except Exception as exc:  # noqa: BLE001
            raise self._translate(exc) from exc

        return response.choices[0].message.content or ""

    def _translate(self, exc: Exception) -> ExternalServiceError:
        sdk = self._sdk
        message = str(exc)
        # APITimeoutError subclasses APIConnectionError, so it is checked first.
        if isinstance(exc, sdk.APITimeoutError):
            return ExternalServiceError(ExternalErrorKind.TIMEOUT, message, service=self.service_name)
        if isinstance(exc, sdk.APIConnectionError):
            return ExternalServiceError(ExternalErrorKind.NETWORK_ERROR, message, service=self.service_name)
        if isinstance(exc, sdk.RateLimitError):
            return ExternalServiceError(
                ExternalErrorKind.RATE_LIMIT,
                message,
                status=429,
                service=self.service_name,
            )
        if isinstance(exc, sdk.APIStatusError):
            return ExternalServiceError(
                kind_from_status(exc.status_code, message),
                message,
                status=exc.status_code,
                service=self.service_name,
            )
        return ExternalServiceError(ExternalErrorKind.UNKNOWN, message, service=self.service_name)


class MockIntentAdapter(BaseIntentAdapter):
    """Deterministic adapter that classifies every keyword the same way.

    Used for local runs and CI pipelines where no AI API is available.
    """

    def __init__(self, intent: str = "informational", confidence: float = 0.5) -> None:
        self._intent = intent
        self._confidence = confidence
        self.calls: List[List[str]] = []

    def classify_keywords(self, keywords: Sequence[str]) -> str:
        """Return a fixed classification for each keyword as JSON."""
        self.calls.append(list(keywords))
        return json.dumps(
            {
                "classifications": [
                    {
                        "keyword": keyword,
                        "intent": self._intent,
                        "confidence": self._confidence,
                        "reason": "Mock classification",
                    }
                    for keyword in keywords
                ]
            },
            ensure_ascii=False,
        )
