"""
Application errors.

Every error raised by a controller or a pipeline step derives from AppError and
is rendered by the handler in main.py as {"ok": False, "code", "error", "details"}.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """
    Base error.

    Attributes:
        code: machine readable code, e.g. "SESSION_NOT_FOUND"
        message: human readable message, shown verbatim by the client
        status_code: HTTP status
        details: extra context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "code": self.code,
            "error": self.message,
            "details": self.details,
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: str, code: Optional[str] = None):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource.capitalize()} not found",
            status_code=404,
            details={"id": identifier},
        )


class ValidationError(AppError):
    """Request content rejected (422)."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Optional[dict] = None):
        super().__init__(code=code, message=message, status_code=422, details=details)


class BadRequestError(AppError):
    """Malformed or unacceptable request (400)."""

    def __init__(self, message: str, code: str = "BAD_REQUEST", details: Optional[dict] = None):
        super().__init__(code=code, message=message, status_code=400, details=details)


class ForbiddenError(AppError):
    """Resource belongs to another user (403)."""

    def __init__(self, message: str = "Not authorized to access this session"):
        super().__init__(code="FORBIDDEN", message=message, status_code=403)


class InvalidStateError(AppError):
    """Pipeline step requested from the wrong session status (400)."""

    def __init__(self, action: str, status: str):
        super().__init__(
            code="INVALID_SESSION_STATE",
            message=f"Cannot {action} session in status {status}",
            status_code=400,
            details={"action": action, "status": status},
        )


class ParseError(AppError):
    """Uploaded file could not be turned into rows (400)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(code="PARSE_FAILED", message=message, status_code=400, details=details)


class ExternalServiceError(AppError):
    """Flying411.com or the LLM provider failed (502)."""

    def __init__(self, service: str, message: str, status_code: int = 502, retryable: bool = False):
        self.retryable = retryable
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=status_code,
            details={"service": service},
        )
