"""Structured output schema for AI intent classification."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AIIntent = Literal[
    "branded_media",
    "branded_customer",
    "branded_ambiguous",
    "transactional",
    "informational",
    "b2b",
    "unknown",
]


class AIIntentItem(BaseModel):
    """One keyword classification returned by the AI service."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    keyword: str = Field(min_length=1)
    intent: AIIntent
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = Field(default="", max_length=500)
