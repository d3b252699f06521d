"""
Repository for import job lifecycle persistence and status lookup.

Progress writes are single UPDATE statements guarded on ``status`` so a
poller never sees a half-applied step and a cancelled job is never
resurrected by a late progress write.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from app.errors import InvalidJobTransitionError
from db.models.import_job import (
    MAX_JOB_ERRORS,
    ImportJob,
    ImportJobStatus,
    can_transition,
)


def cap_errors(errors: Sequence[str], limit: int = MAX_JOB_ERRORS) -> list[str]:
    return [str(message) for message in list(errors)[:limit]]


class ImportJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        import_type: str,
        file_name: str | None = None,
        media_id: uuid.UUID | None = None,
    ) -> ImportJob:
        job = ImportJob(
            import_type=import_type,
            status=ImportJobStatus.PENDING,
            file_name=file_name,
            media_id=media_id,
            total_rows=0,
            processed_rows=0,
            success_count=0,
            error_count=0,
            errors=[],
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> ImportJob | None:
        return self._session.get(ImportJob, job_id)

    def list_jobs(
        self,
        *,
        limit: int = 50,
        import_type: str | None = None,
        status: str | None = None,
    ) -> list[ImportJob]:
        stmt: Select[tuple[ImportJob]] = select(ImportJob)

        if import_type:
            stmt = stmt.where(ImportJob.import_type == import_type)
        if status:
            stmt = stmt.where(ImportJob.status == status)

        stmt = stmt.order_by(ImportJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def get_status(self, job_id: uuid.UUID) -> str | None:
        """
        Read the committed status directly, bypassing the identity map.
        """

        stmt = select(ImportJob.status).where(ImportJob.id == job_id)
        return self._session.execute(stmt).scalar_one_or_none()

    def is_cancelled(self, job_id: uuid.UUID) -> bool:
        return self.get_status(job_id) == ImportJobStatus.CANCELLED

    def mark_processing(
        self,
        *,
        job_id: uuid.UUID,
        total_rows: int,
        current_step: str,
    ) -> ImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        self._ensure_transition(job, ImportJobStatus.PROCESSING)
        job.status = ImportJobStatus.PROCESSING
        job.total_rows = max(0, total_rows)
        job.current_step = current_step
        job.started_at = job.started_at or datetime.now(timezone.utc)
        job.completed_at = None
        job.error_message = None
        return job

    def update_step(
        self,
        *,
        job_id: uuid.UUID,
        current_step: str,
        total_rows: int | None = None,
    ) -> bool:
        values: dict[str, Any] = {
            "current_step": current_step,
            "updated_at": datetime.now(timezone.utc),
        }
        if total_rows is not None:
            values["total_rows"] = max(0, total_rows)

        stmt = (
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .where(ImportJob.status == ImportJobStatus.PROCESSING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return bool(self._session.execute(stmt).rowcount)

    def update_progress(
        self,
        *,
        job_id: uuid.UUID,
        success_count: int,
        error_count: int,
        current_step: str,
        errors: Sequence[str] = (),
        total_rows: int | None = None,
    ) -> bool:
        """
        Write one progress observation atomically.

        ``processed_rows`` is always derived from the two counters. Returns
        False when the job is no longer processing (for example cancelled).
        """

        values: dict[str, Any] = {
            "success_count": success_count,
            "error_count": error_count,
            "processed_rows": success_count + error_count,
            "current_step": current_step,
            "errors": cap_errors(errors),
            "updated_at": datetime.now(timezone.utc),
        }
        if total_rows is not None:
            values["total_rows"] = total_rows

        stmt = (
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .where(ImportJob.status == ImportJobStatus.PROCESSING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        return bool(result.rowcount)

    def mark_completed(
        self,
        *,
        job_id: uuid.UUID,
        success_count: int,
        error_count: int,
        errors: Sequence[str] = (),
        result_payload: dict[str, Any] | None = None,
    ) -> ImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        self._session.refresh(job)
        self._ensure_transition(job, ImportJobStatus.COMPLETED)
        processed = success_count + error_count
        job.status = ImportJobStatus.COMPLETED
        job.success_count = success_count
        job.error_count = error_count
        job.processed_rows = processed
        job.total_rows = max(job.total_rows, processed)
        job.errors = cap_errors(errors)
        job.current_step = None
        job.completed_at = datetime.now(timezone.utc)
        job.result_payload = result_payload
        job.error_message = None
        return job

    def mark_failed(
        self,
        *,
        job_id: uuid.UUID,
        error_message: str,
        result_payload: dict[str, Any] | None = None,
    ) -> ImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        self._session.refresh(job)
        if job.status == ImportJobStatus.CANCELLED:
            return job
        self._ensure_transition(job, ImportJobStatus.FAILED)
        job.status = ImportJobStatus.FAILED
        job.completed_at = datetime.now(timezone.utc)
        job.error_message = error_message
        job.errors = cap_errors([*(job.errors or []), error_message])
        if result_payload is not None:
            job.result_payload = result_payload
        return job

    def cancel(self, *, job_id: uuid.UUID) -> ImportJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        self._ensure_transition(job, ImportJobStatus.CANCELLED)
        job.status = ImportJobStatus.CANCELLED
        job.completed_at = datetime.now(timezone.utc)
        return job

    @staticmethod
    def _ensure_transition(job: ImportJob, target: str) -> None:
        if not can_transition(job.status, target):
            raise InvalidJobTransitionError(job.status, target)
