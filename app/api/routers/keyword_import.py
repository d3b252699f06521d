"""
Synchronous keyword/traffic import and dry-run validation endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Form
from sqlalchemy.orm import Session

from app.api.dependencies import UploadedFile, get_keyword_import_service, read_import_upload
from app.domain.keyword_import import ImportType
from app.repositories.keyword_repository import KeywordRepository
from app.schemas.keyword_import import ImportPreviewResponse, ImportResultResponse, IntentSummary
from app.services.keyword_import_service import ImportRequest, KeywordImportService
from db.session import get_db

router = APIRouter(tags=["keyword-import"])


@router.post("/imports", response_model=ImportResultResponse)
def import_file(
    upload: UploadedFile = Depends(read_import_upload),
    import_type: str = Form(default=ImportType.KEYWORDS, description="keywords or traffic"),
    media_id: UUID | None = Form(default=None, description="Optional media to link imported keywords to"),
    db: Session = Depends(get_db),
    service: KeywordImportService = Depends(get_keyword_import_service),
) -> ImportResultResponse:
    request = ImportRequest(
        content=upload.content,
        import_type=import_type,
        file_name=upload.file_name,
        media_id=media_id,
    )
    try:
        summary = service.run(request, datastore=KeywordRepository(db))
        db.commit()
    except Exception:
        db.rollback()
        raise

    return ImportResultResponse(
        success_count=summary.success_count,
        error_count=summary.error_count,
        errors=summary.errors or None,
        intent_summary=IntentSummary(**summary.intent_summary),
        total_keywords=summary.total_keywords,
        duplicate_count=summary.duplicate_count,
        reused_count=summary.reused_count,
        verified_skipped_count=summary.verified_skipped_count,
    )


@router.post("/imports/validate", response_model=ImportPreviewResponse)
def validate_import_file(
    upload: UploadedFile = Depends(read_import_upload),
    import_type: str = Form(default=ImportType.KEYWORDS, description="keywords or traffic"),
    db: Session = Depends(get_db),
    service: KeywordImportService = Depends(get_keyword_import_service),
) -> ImportPreviewResponse:
    preview = service.preview(
        ImportRequest(content=upload.content, import_type=import_type, file_name=upload.file_name),
        datastore=KeywordRepository(db),
    )
    return ImportPreviewResponse(
        import_type=preview.import_type,
        total_rows=preview.total_rows,
        valid_rows=preview.valid_rows,
        error_count=preview.error_count,
        errors=preview.errors,
        columns=preview.columns,
        encoding=preview.encoding,
        delimiter=preview.delimiter,
        preview_rows=preview.preview_rows,
        detected_domain=preview.detected_domain,
        detected_media_id=preview.detected_media_id,
    )
