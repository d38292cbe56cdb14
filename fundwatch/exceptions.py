"""
Application Exceptions Module.

Centralized exception definitions with:
- Error codes for client handling
- HTTP status code mapping (used by the API layer)
- Structured error responses
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Dict, Optional

from pydantic import BaseModel


# ── Error codes ──────────────────────────────────────────────────────────


class ErrorCode(StrEnum):
    """Application error codes."""

    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"

    # Resource errors (4xxx)
    RULE_NOT_FOUND = "E4000"
    TEMPLATE_NOT_FOUND = "E4001"
    SCHEDULE_NOT_FOUND = "E4002"

    # Engine errors (5xxx)
    EVALUATION_FAILED = "E5000"
    DISPATCH_FAILED = "E5001"
    UNSUPPORTED_CHANNEL = "E5002"

    # Data errors (6xxx)
    PERSISTENCE_FAILED = "E6000"


# ── Error response model ─────────────────────────────────────────────────


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: ErrorDetail
    timestamp: Optional[str] = None


# ── Base exception ───────────────────────────────────────────────────────


class FundWatchError(Exception):
    """Base exception for the alerting engine."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.code.value,
                message=self.message,
                details=self.details,
            ),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


# ── Specific exceptions ──────────────────────────────────────────────────


class ValidationError(FundWatchError):
    """Invalid create/update payload."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            status_code=422,
            details=details,
        )

    @classmethod
    def from_pydantic(cls, error: Any, resource: str) -> "ValidationError":
        """Wrap a pydantic ValidationError raised while building `resource`."""
        return cls(
            message=f"Invalid {resource}: {error.error_count()} validation error(s)",
            details={
                "errors": [
                    {"loc": ".".join(str(p) for p in e["loc"]), "msg": e["msg"]}
                    for e in error.errors()
                ]
            },
        )


class NotFoundError(FundWatchError):
    """Resource not found error."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: ErrorCode = ErrorCode.NOT_FOUND,
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code=code,
            status_code=404,
            details={"resource": resource, "identifier": identifier},
        )


class RuleNotFoundError(NotFoundError):
    def __init__(self, rule_id: str):
        super().__init__("Alert rule", rule_id, ErrorCode.RULE_NOT_FOUND)


class TemplateNotFoundError(NotFoundError):
    def __init__(self, template_id: str):
        super().__init__("Template", template_id, ErrorCode.TEMPLATE_NOT_FOUND)


class ScheduleNotFoundError(NotFoundError):
    def __init__(self, schedule_id: str):
        super().__init__("Scheduled notification", schedule_id, ErrorCode.SCHEDULE_NOT_FOUND)


class EvaluationError(FundWatchError):
    """Activity source or evaluator failure during a monitor tick."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        super().__init__(
            message=message,
            code=ErrorCode.EVALUATION_FAILED,
            status_code=502,
            details={"rule_id": rule_id} if rule_id else None,
        )


class DispatchError(FundWatchError):
    """A channel failed to deliver a message."""

    def __init__(self, channel: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"Dispatch via {channel} failed: {message}",
            code=ErrorCode.DISPATCH_FAILED,
            status_code=502,
            details={"channel": channel, **(details or {})},
        )


class UnsupportedChannelError(FundWatchError):
    """An action targets a channel that has no sender configured."""

    def __init__(self, channel: str):
        super().__init__(
            message=f"No sender configured for channel: {channel}",
            code=ErrorCode.UNSUPPORTED_CHANNEL,
            status_code=400,
            details={"channel": channel},
        )


class PersistenceError(FundWatchError):
    """A store write failed; in-memory state is ahead of the persisted copy."""

    def __init__(self, key: str, message: str):
        super().__init__(
            message=f"Failed to persist '{key}': {message}",
            code=ErrorCode.PERSISTENCE_FAILED,
            status_code=500,
            details={"key": key},
        )
