"""
Schemas for keyword/traffic import and import job status endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class IntentSummary(BaseModel):
    branded_media: int = 0
    branded_customer: int = 0
    branded_ambiguous: int = 0
    transactional: int = 0
    informational: int = 0
    b2b: int = 0
    unknown: int = 0


class ImportResultResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success_count: int = Field(alias="successCount")
    error_count: int = Field(alias="errorCount")
    errors: list[str] | None = None
    intent_summary: IntentSummary = Field(alias="intentSummary")
    total_keywords: int = Field(alias="totalKeywords")
    duplicate_count: int = Field(default=0, alias="duplicateCount")
    reused_count: int = Field(default=0, alias="reusedCount")
    verified_skipped_count: int = Field(default=0, alias="verifiedSkippedCount")


class ImportJobAcceptedResponse(BaseModel):
    job_id: UUID
    import_type: str
    status: str
    created_at: datetime


class ImportJobStatusResponse(BaseModel):
    id: UUID
    import_type: str
    status: str
    file_name: str | None = None
    media_id: UUID | None = None
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    current_step: str | None = None
    errors: list[str] = Field(default_factory=list)
    result_payload: dict[str, Any] | None = None
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ImportJobListResponse(BaseModel):
    jobs: list[ImportJobStatusResponse] = Field(default_factory=list)


class ImportPreviewResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    import_type: str = Field(alias="importType")
    total_rows: int = Field(alias="totalRows")
    valid_rows: int = Field(alias="validRows")
    error_count: int = Field(alias="errorCount")
    errors: list[str] = Field(default_factory=list)
    columns: list[str] = Field(default_factory=list)
    encoding: str
    delimiter: str
    preview_rows: list[dict[str, Any]] = Field(default_factory=list, alias="previewRows")
    detected_domain: str | None = Field(default=None, alias="detectedDomain")
    detected_media_id: UUID | None = Field(default=None, alias="detectedMediaId")
