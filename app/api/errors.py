"""
app/api/errors.py

FastAPI exception handlers rendering every failure as the standard error
body ``{"error": {code, message, details?, timestamp}}``.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import AppError, report_error
from monitoring.error_tracking import BaseErrorTracker
from monitoring.metrics import MetricsCollector


def register_exception_handlers(
    application: FastAPI,
    *,
    error_tracker: BaseErrorTracker,
    metrics: MetricsCollector | None = None,
) -> None:
    def _render(request: Request, exc: Exception) -> JSONResponse:
        app_error = report_error(exc, tracker=error_tracker, metrics=metrics)
        return JSONResponse(status_code=app_error.http_status, content=app_error.to_dict())

    @application.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        return _render(request, exc)

    @application.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _render(request, exc)

    @application.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _render(request, exc)

    @application.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        return _render(request, exc)
