"""
API error types.

Each error carries the HTTP status it maps to. Routers raise them and the
handler registered in main.py renders {"error": ..., "details": ...}.
"""
from typing import Any, Optional


class APIError(Exception):
    """Base class for errors that become an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequestError(APIError):
    """Client sent something we refuse before touching the store."""
    status_code = 400


class ForbiddenError(APIError):
    """Caller does not own the resource."""
    status_code = 403


class NotFoundError(APIError):
    status_code = 404


class ConflictError(APIError):
    """Unique key already taken."""
    status_code = 409


class ServerError(APIError):
    """Unexpected store or stream failure. Underlying message goes in details."""
    status_code = 500
