"""
Asynchronous import job endpoints: submit, poll, list and cancel.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import UploadedFile, get_import_orchestrator, read_import_upload
from app.domain.keyword_import import IMPORT_TYPES, ImportType
from app.errors import UnsupportedImportTypeError
from app.schemas.keyword_import import (
    ImportJobAcceptedResponse,
    ImportJobListResponse,
    ImportJobStatusResponse,
)
from app.services.import_orchestrator_service import (
    FastAPIBackgroundTaskExecutor,
    ImportOrchestratorService,
)
from app.services.keyword_import_service import ImportRequest
from db.models.import_job import ImportJob
from db.session import get_db

router = APIRouter(tags=["import-jobs"])


@router.post(
    "/imports/jobs",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=ImportJobAcceptedResponse,
)
def submit_import_job(
    background_tasks: BackgroundTasks,
    upload: UploadedFile = Depends(read_import_upload),
    import_type: str = Form(default=ImportType.KEYWORDS, description="keywords or traffic"),
    media_id: UUID | None = Form(default=None, description="Optional media to link imported keywords to"),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator),
) -> ImportJobAcceptedResponse:
    if import_type not in IMPORT_TYPES:
        raise UnsupportedImportTypeError(f"Unsupported import type: {import_type}")

    job = orchestrator.trigger_import(
        db=db,
        executor=FastAPIBackgroundTaskExecutor(background_tasks),
        request=ImportRequest(
            content=upload.content,
            import_type=import_type,
            file_name=upload.file_name,
            media_id=media_id,
        ),
    )
    return ImportJobAcceptedResponse(
        job_id=job.id,
        import_type=job.import_type,
        status=job.status,
        created_at=job.created_at,
    )


@router.get("/imports/jobs", response_model=ImportJobListResponse)
def list_import_jobs(
    import_type: str | None = Query(default=None, description="Optional import type filter"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=50, ge=1, le=500, description="Max jobs returned"),
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator),
) -> ImportJobListResponse:
    jobs = orchestrator.list_jobs(
        db=db,
        limit=limit,
        import_type=import_type,
        status=status_filter,
    )
    return ImportJobListResponse(jobs=[_to_status_response(job) for job in jobs])


@router.get("/imports/jobs/{job_id}", response_model=ImportJobStatusResponse)
def get_import_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator),
) -> ImportJobStatusResponse:
    return _to_status_response(orchestrator.get_job(db=db, job_id=job_id))


@router.post("/imports/jobs/{job_id}/cancel", response_model=ImportJobStatusResponse)
def cancel_import_job(
    job_id: UUID,
    db: Session = Depends(get_db),
    orchestrator: ImportOrchestratorService = Depends(get_import_orchestrator),
) -> ImportJobStatusResponse:
    return _to_status_response(orchestrator.cancel_job(db=db, job_id=job_id))


def _to_status_response(job: ImportJob) -> ImportJobStatusResponse:
    return ImportJobStatusResponse(
        id=job.id,
        import_type=job.import_type,
        status=job.status,
        file_name=job.file_name,
        media_id=job.media_id,
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        success_count=job.success_count,
        error_count=job.error_count,
        current_step=job.current_step,
        errors=list(job.errors or []),
        result_payload=job.result_payload,
        error_message=job.error_message,
        created_at=job.created_at,
        updated_at=job.updated_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )
