"""
Application exceptions.

Services raise these; the error handlers registered in main.py turn them
into JSON responses. Each exception knows its HTTP status and error code,
so no layer below the boundary deals with status codes directly.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base class for all application exceptions.
    """

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message
        self.details = details or {}
        self.headers = headers or {}
        super().__init__(self.message)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Client errors (4xx)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class InvalidInput(AppException):
    """Missing or malformed request data (400)."""

    status_code = 400
    error_code = "INVALID_INPUT"


class SizeLimitExceeded(AppException):
    """Declared or observed file size above the hard cap (400)."""

    status_code = 400
    error_code = "SIZE_LIMIT_EXCEEDED"


class QuotaExceeded(AppException):
    """Upload would push the user over their storage quota (400)."""

    status_code = 400
    error_code = "QUOTA_EXCEEDED"

    def __init__(self, message: str = "upload quota exceeded", **kwargs):
        super().__init__(message, **kwargs)


class Forbidden(AppException):
    """Resource belongs to someone else (403)."""

    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden", **kwargs):
        super().__init__(message, **kwargs)


class NotFound(AppException):
    """Resource missing, or hidden from the caller (404)."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Optional[str] = None, **kwargs):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(message, **kwargs)


class InvalidState(AppException):
    """Operation not allowed in the record's current state (409)."""

    status_code = 409
    error_code = "INVALID_STATE"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Server errors (5xx)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class InternalInvariantViolation(AppException):
    """Something that must never happen did (500). Not retried."""

    status_code = 500
    error_code = "INTERNAL_INVARIANT_VIOLATION"


class SigningError(AppException):
    """Signing key unusable or policy malformed (500)."""

    status_code = 500
    error_code = "SIGNING_ERROR"


class UpstreamFailure(AppException):
    """A backend we depend on failed (502)."""

    status_code = 502
    error_code = "UPSTREAM_FAILURE"


class StorageError(UpstreamFailure):
    """Object storage call failed."""


class TokenIssueError(UpstreamFailure):
    """Storage-token issuer call failed."""
