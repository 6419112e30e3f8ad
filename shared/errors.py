"""
Shared error handling for the Stylino storefront services.

Route handlers raise these for request-level failures; ``BaseService``
turns them into ``{"error": ...}`` JSON bodies. Authorization denials are
not exceptions, see ``service_storefront.app.auth.guard``.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    code: str
    details: Dict[str, Any] = {}


class StorefrontException(Exception):
    """Base exception for storefront services."""

    status_code = 400

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.message, code=self.code, details=self.details)


class ValidationError(StorefrontException):
    """Request payload or query failed validation."""

    status_code = 400

    def __init__(self, message: str = "درخواست نامعتبر است.", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(StorefrontException):
    """Requested entity does not exist."""

    status_code = 404

    def __init__(self, message: str = "موردی یافت نشد.", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class PersistenceError(StorefrontException):
    """Database is unreachable or a query failed."""

    status_code = 503

    def __init__(self, message: str = "پایگاه داده در دسترس نیست.", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_ERROR", message, details)
