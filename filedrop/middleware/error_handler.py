"""
Global error handlers.

Every error leaves the API in the same JSON envelope:

{
    "success": false,
    "error": {
        "code": "QUOTA_EXCEEDED",
        "message": "upload quota exceeded",
        "details": {...},
        "timestamp": "2026-01-01T10:00:00"
    }
}
"""
import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filedrop.errors import AppException
from filedrop.models.base import utcnow

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Optional[dict] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the standard error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {
                "code": error_code,
                "message": message,
                "details": details or {},
                "timestamp": utcnow().isoformat(),
            },
        },
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle every filedrop.errors exception.

    Client errors are logged as warnings; server errors with a traceback.
    """
    extra = {
        "event": "request_failed",
        "error_code": exc.error_code,
        "status_code": exc.status_code,
        "error_message": exc.message,
        "path": request.url.path,
        "method": request.method,
    }
    if exc.status_code >= 500:
        logger.error(f"AppException: {exc.error_code}", extra=extra, exc_info=exc)
    else:
        logger.warning(f"AppException: {exc.error_code}", extra=extra)

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTPException raised by FastAPI itself or by auth."""
    logger.warning(
        f"HTTPException: {exc.status_code}",
        extra={
            "status_code": exc.status_code,
            "detail": exc.detail,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code="HTTP_ERROR",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request body or parameters: 400, same code as InvalidInput."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Validation error",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )
    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        message="Invalid request data",
        error_code="INVALID_INPUT",
        details={"errors": errors},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log everything, reveal nothing."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Internal server error",
        error_code="INTERNAL_ERROR",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all handlers to the app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
