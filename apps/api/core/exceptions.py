"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every error body has the
shape ``{"error": <message>}``; validation failures add ``details``.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class PayloadTooLargeError(APIException):
    """Request body exceeds the configured ceiling."""

    def __init__(self, limit: int):
        super().__init__(
            status_code=413,
            detail=f"Request body exceeds {limit} bytes",
            error_code="PAYLOAD_TOO_LARGE"
        )


class UpstreamServiceError(APIException):
    """
    An external dependency (identity, vector store, LLM) failed.

    The detail is a fixed, generic message; the underlying cause is logged by
    whoever raises this and never reaches the client.
    """

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="UPSTREAM_ERROR"
        )


def error_response(
    status_code: int,
    message: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    """Build the uniform ``{"error": ...}`` JSON response."""
    content: Dict[str, Any] = {"error": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def render_api_exception(exc: StarletteHTTPException) -> JSONResponse:
    """Render an HTTPException outside the router, e.g. from middleware."""
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


def _field_name(loc: tuple) -> str:
    # ("body", "accuracy") -> "accuracy"; ("body",) -> "body"
    parts = [str(p) for p in loc[1:]] if loc and loc[0] == "body" else [str(p) for p in loc]
    return ".".join(parts) or "body"


def validation_details(exc: RequestValidationError) -> Dict[str, List[str]]:
    """Group pydantic error messages by field name."""
    details: Dict[str, List[str]] = {}
    for err in exc.errors():
        field = _field_name(tuple(err.get("loc", ())))
        if err.get("type") == "json_invalid":
            field = "body"
        details.setdefault(field, []).append(err.get("msg", "Invalid value"))
    return details


async def api_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPException (and APIException subclasses) as ``{"error": ...}``."""
    return render_api_exception(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Client sent a body that failed schema validation."""
    details = validation_details(exc)
    logger.info(
        f"Validation failed: {request.method} {request.url.path}",
        extra={"extra_fields": {"path": request.url.path, "fields": sorted(details)}},
    )
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request body",
        details=details,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=exc,
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
            }
        }
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
