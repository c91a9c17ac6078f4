"""
FeeLens - Structured Error System

Every error that crosses the API boundary carries a machine-readable code.
The code is the primary key for user-facing messages; the message is a
human-readable default.
"""
from enum import Enum
from typing import Dict, Optional, Any


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in ``error_code``."""
    AUTH_REQUIRED = "AUTH_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    PROVIDER_NOT_FOUND = "PROVIDER_NOT_FOUND"
    PROVIDER_NOT_APPROVED = "PROVIDER_NOT_APPROVED"
    RATE_LIMIT_DAILY = "RATE_LIMIT_DAILY"
    RATE_LIMIT_PROVIDER = "RATE_LIMIT_PROVIDER"
    SCHEMA_NOT_FOUND = "SCHEMA_NOT_FOUND"
    SCHEMA_INACTIVE = "SCHEMA_INACTIVE"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.AUTH_REQUIRED: "Please sign in to continue.",
    ErrorCode.FORBIDDEN: "You do not have permission to perform this action.",
    ErrorCode.NOT_FOUND: "The requested record was not found.",
    ErrorCode.PROVIDER_NOT_FOUND: "This service provider was not found.",
    ErrorCode.PROVIDER_NOT_APPROVED: (
        "This provider is pending verification. Entries can only be "
        "submitted for verified providers."
    ),
    ErrorCode.RATE_LIMIT_DAILY: "You've reached the daily submission limit. Please try again later.",
    ErrorCode.RATE_LIMIT_PROVIDER: "You've reached the annual submission limit for this provider.",
    ErrorCode.SCHEMA_NOT_FOUND: "This industry type is not yet supported.",
    ErrorCode.SCHEMA_INACTIVE: "This industry category is temporarily unavailable.",
    ErrorCode.VALIDATION_FAILED: "Some fields need to be corrected.",
    ErrorCode.CONFLICT: "This record was changed by someone else. Reload and try again.",
    ErrorCode.INTERNAL_ERROR: "Something went wrong on our end. Please try again in a moment.",
}


class FeeLensError(Exception):
    """Base class for all domain errors surfaced at the API boundary."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    http_status: int = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "ok": False,
            "error_code": self.code.value,
            "message": self.message,
        }


class AuthRequiredError(FeeLensError):
    code = ErrorCode.AUTH_REQUIRED
    http_status = 401


class ForbiddenError(FeeLensError):
    code = ErrorCode.FORBIDDEN
    http_status = 403


class NotFoundError(FeeLensError):
    code = ErrorCode.NOT_FOUND
    http_status = 404


class ProviderNotFoundError(FeeLensError):
    code = ErrorCode.PROVIDER_NOT_FOUND
    http_status = 404


class ProviderNotApprovedError(FeeLensError):
    code = ErrorCode.PROVIDER_NOT_APPROVED
    http_status = 400


class SchemaNotFoundError(FeeLensError):
    code = ErrorCode.SCHEMA_NOT_FOUND
    http_status = 404


class SchemaInactiveError(FeeLensError):
    code = ErrorCode.SCHEMA_INACTIVE
    http_status = 400


class ConflictError(FeeLensError):
    """Illegal state transition. The fix is to reload state, not change input."""
    code = ErrorCode.CONFLICT
    http_status = 409


class ValidationFailedError(FeeLensError):
    """Input did not satisfy the schema. Carries a field path -> message map."""
    code = ErrorCode.VALIDATION_FAILED
    http_status = 400

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None):
        self.field_errors = dict(field_errors)
        super().__init__(message)

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["field_errors"] = self.field_errors
        return payload


class RateLimitExceededError(FeeLensError):
    """Submission cap reached. ``scope`` is ``daily`` or ``provider``."""
    http_status = 429

    def __init__(self, scope: str, retry_after_seconds: int):
        self.scope = scope
        self.retry_after_seconds = max(1, int(retry_after_seconds))
        self.code = (
            ErrorCode.RATE_LIMIT_DAILY if scope == "daily" else ErrorCode.RATE_LIMIT_PROVIDER
        )
        super().__init__()

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["retry_after_seconds"] = self.retry_after_seconds
        return payload
