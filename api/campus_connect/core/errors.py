"""Single place where error responses are shaped.

Route handlers raise; the handlers installed here turn those exceptions into
``{"error", "message", "details"?}`` bodies.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from campus_connect.core.config import get_settings
from campus_connect.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
)

logger = logging.getLogger(__name__)

AVAILABLE_ROUTES = {
    "health": "GET /health",
    "internships": "GET /internships",
    "jobs": "GET /jobs",
    "hackathons": "GET /hackathons",
    "scholarships": "GET /scholarships",
    "learning": "GET /learning",
    "opportunity": "GET /opportunities/{id}",
    "stats": "GET /opportunities/stats",
    "batch": "POST /opportunities/batch",
}


class ApiError(Exception):
    """Request-level failure raised by route handlers."""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        *,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.details = details


class InvalidIdentifierError(ApiError):
    def __init__(self) -> None:
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "Invalid ID format",
            "ID must be a valid UUID",
        )


def error_response(
    status_code: int,
    error: str,
    message: str,
    *,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {"error": error, "message": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _handle_api_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(RepositoryValidationError, _handle_repository_validation)
    app.add_exception_handler(RepositoryNotFoundError, _handle_not_found)
    app.add_exception_handler(RepositoryUnavailableError, _handle_unavailable)
    app.add_exception_handler(asyncpg.PostgresError, _handle_postgres_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(Exception, _handle_unexpected)


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.error, exc.message, details=exc.details)


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": _field_name(error.get("loc", ())), "message": _clean_message(error.get("msg", ""))}
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation failed",
        "Request payload is invalid",
        details=details,
    )


async def _handle_repository_validation(request: Request, exc: RepositoryValidationError) -> JSONResponse:
    details = [{"field": exc.field, "message": str(exc)}] if exc.field else None
    return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", str(exc), details=details)


async def _handle_not_found(request: Request, exc: RepositoryNotFoundError) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, "Opportunity not found", str(exc))


async def _handle_unavailable(request: Request, exc: RepositoryUnavailableError) -> JSONResponse:
    logger.error("repository unavailable path=%s: %s", request.url.path, exc)
    return error_response(status.HTTP_503_SERVICE_UNAVAILABLE, "Service unavailable", str(exc))


async def _handle_postgres_error(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    logger.warning(
        "database error path=%s sqlstate=%s: %s",
        request.url.path,
        getattr(exc, "sqlstate", None),
        exc,
    )
    details = _diagnostic(getattr(exc, "detail", None) or str(exc))

    if isinstance(exc, asyncpg.UniqueViolationError):
        return error_response(
            status.HTTP_409_CONFLICT,
            "Duplicate entry",
            "An opportunity with this URL already exists for this type",
            details=details,
        )
    if isinstance(exc, asyncpg.ForeignKeyViolationError):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid reference",
            "Referenced record does not exist",
            details=details,
        )
    if isinstance(exc, asyncpg.NotNullViolationError):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Missing required field",
            f"Field '{getattr(exc, 'column_name', None)}' is required",
            details=details,
        )
    if isinstance(exc, (asyncpg.DataError, asyncpg.CheckViolationError)):
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            "Invalid format",
            "Invalid data format provided",
            details=details,
        )
    return await _handle_unexpected(request, exc)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Route not found",
                "message": f"Cannot {request.method} {request.url.path}",
                "availableRoutes": AVAILABLE_ROUTES,
            },
        )
    return error_response(exc.status_code, str(exc.detail), str(exc.detail), headers=getattr(exc, "headers", None))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error path=%s method=%s", request.url.path, request.method, exc_info=exc)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "An unexpected error occurred",
        details=_diagnostic(repr(exc)),
    )


def _diagnostic(detail: Any) -> Any:
    # Internal detail is only exposed while running in the dev environment.
    return detail if get_settings().is_development else None


def _field_name(loc: Any) -> str:
    parts = [str(part) for part in loc if part not in {"body", "query", "path"}]
    return ".".join(parts) or "body"


def _clean_message(message: str) -> str:
    return message.removeprefix("Value error, ")
