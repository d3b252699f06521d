"""
app/domain/keyword_import.py

Domain models for keyword/traffic file imports and intent classification.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


class IntentCategory:
    BRANDED_MEDIA = "branded_media"
    BRANDED_CUSTOMER = "branded_customer"
    BRANDED_AMBIGUOUS = "branded_ambiguous"
    TRANSACTIONAL = "transactional"
    INFORMATIONAL = "informational"
    B2B = "b2b"
    UNKNOWN = "unknown"


INTENT_CATEGORIES: tuple[str, ...] = (
    IntentCategory.BRANDED_MEDIA,
    IntentCategory.BRANDED_CUSTOMER,
    IntentCategory.BRANDED_AMBIGUOUS,
    IntentCategory.TRANSACTIONAL,
    IntentCategory.INFORMATIONAL,
    IntentCategory.B2B,
    IntentCategory.UNKNOWN,
)


class ClassificationSource:
    RULE = "rule"
    AI = "ai"
    MANUAL = "manual"


class QueryType:
    DO = "Do"
    KNOW = "Know"
    GO = "Go"
    BUY = "Buy"


class ImportType:
    KEYWORDS = "keywords"
    TRAFFIC = "traffic"


IMPORT_TYPES: tuple[str, ...] = (ImportType.KEYWORDS, ImportType.TRAFFIC)


def normalize_keyword(keyword: str) -> str:
    """
    Lower-case and collapse internal whitespace.
    """

    return " ".join(keyword.lower().split())


def empty_intent_summary() -> dict[str, int]:
    return {intent: 0 for intent in INTENT_CATEGORIES}


@dataclass(frozen=True)
class ClassificationResult:
    """
    One intent decision for one keyword.
    """

    intent: str
    confidence: float
    reason: str
    source: str
    classified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.intent not in INTENT_CATEGORIES:
            raise ValueError(f"Unknown intent category: {self.intent}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")


@dataclass(frozen=True)
class StoredClassification:
    """
    Classification already persisted for a keyword.

    Verified rows were confirmed by an operator; imports never replace
    their intent.
    """

    intent: str
    confidence: float | None = None
    reason: str | None = None
    source: str | None = None
    is_verified: bool = False

    @property
    def is_reusable(self) -> bool:
        if self.intent not in INTENT_CATEGORIES:
            return False
        return self.is_verified or self.intent != IntentCategory.UNKNOWN

    def to_result(self) -> ClassificationResult:
        if self.is_verified:
            return ClassificationResult(
                intent=self.intent,
                confidence=self.confidence if self.confidence is not None else 1.0,
                reason=self.reason or "Verified classification",
                source=ClassificationSource.MANUAL,
            )
        return ClassificationResult(
            intent=self.intent,
            confidence=self.confidence if self.confidence is not None else 0.5,
            reason=self.reason or "Existing classification",
            source=self.source or ClassificationSource.RULE,
        )


@dataclass(frozen=True)
class RowRecord:
    """
    One parsed keyword line.
    """

    keyword: str
    normalized_keyword: str
    source_line: int
    search_volume: int | None = None
    cpc: float | None = None
    competition: int | None = None
    seo_difficulty: int | None = None
    search_rank: int | None = None
    traffic: int | None = None
    url: str | None = None


@dataclass(frozen=True)
class TrafficRecord:
    """
    One parsed traffic line.
    """

    domain: str
    period: str
    source_line: int
    monthly_visits: int | None = None


@dataclass(frozen=True)
class NormalizedFile:
    """
    Output of the row normalizer for one uploaded file.
    """

    records: list[Any]
    total_lines: int
    error_count: int = 0
    errors: list[str] = field(default_factory=list)
    encoding: str = "utf-8"
    delimiter: str = ","
    columns: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ImportSummary:
    """
    End-of-run import summary returned to callers and stored on the job.
    """

    success_count: int
    error_count: int
    total_keywords: int
    intent_summary: dict[str, int]
    errors: list[str] = field(default_factory=list)
    duplicate_count: int = 0
    ai_classified_count: int = 0
    fallback_batch_count: int = 0
    reused_count: int = 0
    verified_skipped_count: int = 0
    written_intent_summary: dict[str, int] = field(default_factory=dict)

    @property
    def total_processed(self) -> int:
        return self.success_count + self.error_count

    def to_payload(self) -> dict[str, Any]:
        return {
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors": list(self.errors),
            "intent_summary": dict(self.intent_summary),
            "written_intent_summary": dict(self.written_intent_summary),
            "total_keywords": self.total_keywords,
            "duplicate_count": self.duplicate_count,
            "ai_classified_count": self.ai_classified_count,
            "fallback_batch_count": self.fallback_batch_count,
            "reused_count": self.reused_count,
            "verified_skipped_count": self.verified_skipped_count,
        }


@dataclass(frozen=True)
class ImportPreview:
    """
    Dry-run view of an uploaded file: parse results and the media its URLs
    point at. Nothing is written.
    """

    import_type: str
    total_rows: int
    valid_rows: int
    error_count: int
    errors: list[str]
    columns: list[str]
    encoding: str
    delimiter: str
    preview_rows: list[dict[str, Any]]
    detected_domain: str | None = None
    detected_media_id: uuid.UUID | None = None
