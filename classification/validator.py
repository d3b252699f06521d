"""Validation layer for raw AI classification output.

Parses and validates JSON strings into ``AIIntentItem`` records keyed by
normalized keyword.
"""

import json
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from app.domain.keyword_import import normalize_keyword
from classification.schema import AIIntentItem
from resilience.errors import ExternalErrorKind, ExternalServiceError


class IntentOutputValidationError(ExternalServiceError):
    """Raised when AI output fails parsing or schema validation.

    Classified as a non-retryable ``api_error`` so the whole batch degrades
    to rule-based results.

    Attributes:
        stage: Which validation step failed ("json_parse" or "schema").
        errors: List of human-readable error descriptions.
        raw_response: The original string that failed validation.
    """

    def __init__(
        self,
        stage: str,
        errors: List[str],
        raw_response: str,
    ) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        super().__init__(
            ExternalErrorKind.API_ERROR,
            f"AI output validation failed at stage '{stage}': " + "; ".join(errors),
        )


def _strip_markdown_fences(text: str) -> str:
    """Remove optional markdown code fences wrapping JSON."""
    stripped = text.strip()
    match = re.match(
        r"^```(?:json)?\s*\n?(.*?)\n?\s*```$",
        stripped,
        re.DOTALL,
    )
    if match:
        return match.group(1).strip()
    return stripped


def _extract_items(data: Any) -> List[Any]:
    """Accept either a bare array or an object wrapping one."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("classifications", "results", "items"):
            if isinstance(data.get(key), list):
                return data[key]
        # keyword -> {intent, confidence, reason} map
        if data and all(isinstance(value, dict) for value in data.values()):
            return [{"keyword": keyword, **value} for keyword, value in data.items()]
    raise TypeError("expected a JSON array or an object with a 'classifications' array")


def validate_intent_response(raw_response: str) -> Dict[str, AIIntentItem]:
    """Parse and validate a raw AI response string.

    Steps:
        1. Strip optional markdown fences.
        2. Parse as JSON.
        3. Locate the list of classification entries.
        4. Validate every entry against ``AIIntentItem``.

    Args:
        raw_response: The raw string returned by the intent adapter.

    Returns:
        Validated items keyed by normalized keyword. Later duplicates win.

    Raises:
        IntentOutputValidationError: If JSON parsing or schema validation fails.
    """
    cleaned = _strip_markdown_fences(raw_response)

    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as exc:
        raise IntentOutputValidationError(
            stage="json_parse",
            errors=[str(exc)],
            raw_response=raw_response,
        ) from exc

    try:
        entries = _extract_items(data)
    except TypeError as exc:
        raise IntentOutputValidationError(
            stage="schema",
            errors=[str(exc)],
            raw_response=raw_response,
        ) from exc

    items: Dict[str, AIIntentItem] = {}
    for entry in entries:
        try:
            item = AIIntentItem.model_validate(entry)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
                for e in exc.errors()
            ]
            raise IntentOutputValidationError(
                stage="schema",
                errors=errors,
                raw_response=raw_response,
            ) from exc
        items[normalize_keyword(item.keyword)] = item

    return items
