"""
app/api/dependencies.py

Shared FastAPI dependencies for upload validation and service lookup.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import File, Request, UploadFile

from app.config import get_import_settings
from app.container import ServiceContainer
from app.errors import FileTooLargeError, UnsupportedImportTypeError, UploadReadError
from app.services.import_orchestrator_service import ImportOrchestratorService
from app.services.keyword_import_service import KeywordImportService

ALLOWED_EXTENSIONS = (".csv", ".tsv", ".txt")
TEXT_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "text/tab-separated-values",
    "application/csv",
    "application/vnd.ms-excel",
}

_READ_CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class UploadedFile:
    file_name: str
    content_type: str
    content: bytes


def read_import_upload(file: UploadFile = File(...)) -> UploadedFile:
    """
    Validate extension/MIME type and size, then read the upload into memory.
    """

    filename = (file.filename or "").strip()
    content_type = (file.content_type or "").strip().lower()

    has_text_extension = filename.lower().endswith(ALLOWED_EXTENSIONS)
    has_text_content_type = content_type in TEXT_CONTENT_TYPES
    if not has_text_extension and not has_text_content_type:
        raise UnsupportedImportTypeError(
            "Only .csv, .tsv or .txt files are allowed",
            details={"file_name": filename, "content_type": content_type},
        )

    limit = get_import_settings().max_file_size_bytes
    buffer = bytearray()
    try:
        file.file.seek(0)
        while True:
            chunk = file.file.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            buffer.extend(chunk)
            if len(buffer) > limit:
                raise FileTooLargeError(len(buffer), limit)
    except OSError as exc:
        raise UploadReadError(details={"file_name": filename, "original_error": str(exc)}) from exc
    finally:
        file.file.close()

    return UploadedFile(
        file_name=filename or "upload.csv",
        content_type=content_type,
        content=bytes(buffer),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_keyword_import_service(request: Request) -> KeywordImportService:
    return get_container(request).import_service


def get_import_orchestrator(request: Request) -> ImportOrchestratorService:
    return get_container(request).orchestrator
