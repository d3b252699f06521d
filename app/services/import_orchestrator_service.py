"""
Orchestrator service for async import job dispatch and lifecycle tracking.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from app.errors import ImportJobNotFoundError, report_error
from app.repositories.keyword_repository import KeywordRepository
from app.services.keyword_import_service import (
    ImportDatastore,
    ImportRequest,
    KeywordImportService,
)
from db.models.import_job import ImportJob, ImportJobStatus, ImportStep
from db.repositories.import_job_repository import ImportJobRepository
from monitoring.error_tracking import BaseErrorTracker, LoggingErrorTracker
from monitoring.metrics import MetricsCollector
from resilience.errors import OperationCancelledError

logger = logging.getLogger(__name__)


class ImportTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class JobProgressReporter:
    """
    Writes step and progress observations for one job.

    Every observation is committed immediately, together with whatever chunk
    writes are pending in the same session.
    """

    def __init__(
        self,
        db: Session,
        job_id: uuid.UUID,
        repository: ImportJobRepository | None = None,
    ) -> None:
        self._db = db
        self._repository = repository or ImportJobRepository(db)
        self._job_id = job_id

    def step(self, step: str, *, total_rows: int | None = None) -> None:
        self._repository.update_step(job_id=self._job_id, current_step=step, total_rows=total_rows)
        self._db.commit()

    def progress(
        self,
        *,
        step: str,
        success_count: int,
        error_count: int,
        errors: list[str],
    ) -> None:
        self._repository.update_progress(
            job_id=self._job_id,
            success_count=success_count,
            error_count=error_count,
            current_step=step,
            errors=errors,
        )
        self._db.commit()

    def is_cancelled(self) -> bool:
        return self._repository.is_cancelled(self._job_id)


class ImportOrchestratorService:
    """
    Coordinates job creation, background execution, and status persistence.
    """

    def __init__(
        self,
        *,
        import_service: KeywordImportService,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        datastore_factory: Callable[[Session], ImportDatastore] = KeywordRepository,
        job_repository_factory: Callable[[Session], ImportJobRepository] = ImportJobRepository,
        error_tracker: BaseErrorTracker | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory: Callable[[], Session] = SessionLocal
        else:
            self._session_factory = session_factory

        self._import_service = import_service
        self._datastore_factory = datastore_factory
        self._job_repository_factory = job_repository_factory
        self._error_tracker = error_tracker or LoggingErrorTracker()
        self._metrics = metrics

    def trigger_import(
        self,
        *,
        db: Session,
        executor: ImportTaskExecutor,
        request: ImportRequest,
    ) -> ImportJob:
        repository = self._job_repository_factory(db)
        with db.begin():
            job = repository.create_job(
                import_type=request.import_type,
                file_name=request.file_name,
                media_id=request.media_id,
            )

        try:
            executor.submit(self._run_import_job, job.id, request)
        except Exception:
            with db.begin():
                repository.mark_failed(
                    job_id=job.id,
                    error_message="Failed to schedule import job.",
                )
            raise

        logger.info("Import job queued id=%s type=%s file=%s", job.id, request.import_type, request.file_name)
        return job

    def get_job(self, *, db: Session, job_id: uuid.UUID) -> ImportJob:
        job = self._job_repository_factory(db).get_job(job_id)
        if job is None:
            raise ImportJobNotFoundError(details={"job_id": str(job_id)})
        return job

    def list_jobs(
        self,
        *,
        db: Session,
        limit: int = 50,
        import_type: str | None = None,
        status: str | None = None,
    ) -> list[ImportJob]:
        return self._job_repository_factory(db).list_jobs(
            limit=limit,
            import_type=import_type,
            status=status,
        )

    def cancel_job(self, *, db: Session, job_id: uuid.UUID) -> ImportJob:
        repository = self._job_repository_factory(db)
        with db.begin():
            job = repository.cancel(job_id=job_id)
            if job is None:
                raise ImportJobNotFoundError(details={"job_id": str(job_id)})
        logger.info("Import job cancelled id=%s", job_id)
        return job

    def _run_import_job(self, job_id: uuid.UUID, request: ImportRequest) -> None:
        with self._session_factory() as db:
            repository = self._job_repository_factory(db)
            try:
                job = repository.get_job(job_id)
                if job is None:
                    raise ImportJobNotFoundError(details={"job_id": str(job_id)})
                if job.status == ImportJobStatus.CANCELLED:
                    logger.info("Import job cancelled before start id=%s", job_id)
                    return

                repository.mark_processing(job_id=job_id, total_rows=0, current_step=ImportStep.PARSE)
                db.commit()

                summary = self._import_service.run(
                    request,
                    datastore=self._datastore_factory(db),
                    reporter=JobProgressReporter(db, job_id, repository),
                )

                if repository.is_cancelled(job_id):
                    raise OperationCancelledError("Import job cancelled during finalize.")

                repository.mark_completed(
                    job_id=job_id,
                    success_count=summary.success_count,
                    error_count=summary.error_count,
                    errors=summary.errors,
                    result_payload=summary.to_payload(),
                )
                db.commit()
                logger.info(
                    "Import job completed id=%s success=%d errors=%d",
                    job_id,
                    summary.success_count,
                    summary.error_count,
                )
            except OperationCancelledError:
                db.rollback()
                logger.info("Import job stopped after cancellation id=%s", job_id)
            except Exception as exc:  # noqa: BLE001
                self._mark_job_failed(db=db, job_id=job_id, exc=exc)

    def _mark_job_failed(self, *, db: Session, job_id: uuid.UUID, exc: Exception) -> None:
        repository = self._job_repository_factory(db)
        app_error = report_error(exc, tracker=self._error_tracker, metrics=self._metrics)
        error_message = f"[{app_error.code}] {app_error.message}"
        if app_error.details:
            error_message = f"{error_message}: {app_error.details}"
        logger.error("Import job failed id=%s error=%s", job_id, error_message)
        try:
            db.rollback()
            failed_job = repository.mark_failed(
                job_id=job_id,
                error_message=error_message[:2000],
            )
            if failed_job is None:
                logger.error("Unable to mark import job as failed because it was not found id=%s", job_id)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed import job state id=%s", job_id)
