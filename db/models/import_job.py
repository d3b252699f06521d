"""
db/models/import_job.py

Import job model: status and progress read model for asynchronous
keyword/traffic imports, polled by the admin UI.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

MAX_JOB_ERRORS = 5


class ImportJobStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


IMPORT_JOB_STATUSES: tuple[str, ...] = (
    ImportJobStatus.PENDING,
    ImportJobStatus.PROCESSING,
    ImportJobStatus.COMPLETED,
    ImportJobStatus.FAILED,
    ImportJobStatus.CANCELLED,
)

TERMINAL_STATUSES: frozenset[str] = frozenset(
    {ImportJobStatus.COMPLETED, ImportJobStatus.FAILED, ImportJobStatus.CANCELLED}
)

# processing -> processing is the step-update self transition.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ImportJobStatus.PENDING: frozenset(
        {ImportJobStatus.PROCESSING, ImportJobStatus.FAILED, ImportJobStatus.CANCELLED}
    ),
    ImportJobStatus.PROCESSING: frozenset(
        {
            ImportJobStatus.PROCESSING,
            ImportJobStatus.COMPLETED,
            ImportJobStatus.FAILED,
            ImportJobStatus.CANCELLED,
        }
    ),
    ImportJobStatus.COMPLETED: frozenset(),
    ImportJobStatus.FAILED: frozenset(),
    ImportJobStatus.CANCELLED: frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class ImportStep:
    PARSE = "parse"
    CLASSIFY = "classify"
    UPSERT = "upsert"
    ASSOCIATE = "associate"
    FINALIZE = "finalize"


class ImportJob(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "import_jobs"

    import_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="keywords or traffic",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ImportJobStatus.PENDING,
    )
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    media_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True,
        comment="Optional target media for keyword association",
    )
    total_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_rows: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[str | None] = mapped_column(String(32), nullable=True)
    errors: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        comment="First few error messages, capped",
    )
    result_payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Final import summary",
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            "success_count + error_count = processed_rows",
            name="ck_import_jobs_counts_sum",
        ),
        CheckConstraint(
            "processed_rows <= total_rows",
            name="ck_import_jobs_processed_le_total",
        ),
        Index("ix_import_jobs_status", "status"),
        Index("ix_import_jobs_created_at", "created_at"),
        Index("ix_import_jobs_import_type_status", "import_type", "status"),
    )
