"""Error Hierarchy: typed, categorized exceptions for every preview pipeline failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Submission errors (400-level) reach the caller synchronously; the job is never created
    - Provider and timeout errors are caught per job by the worker and recorded as Failed
    - to_response() produces the REST envelope; no internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with PreviewPipelineError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - QuotaExceededError carries guest id and limit as attributes: the API layer and
      the logs both need them without parsing the message
"""

from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    job_id: str | None = None
    job_kind: str | None = None
    provider: str | None = None
    user_message: str | None = None
    retry_after_ms: int | None = None


class PreviewPipelineError(Exception):
    """Base exception for all preview pipeline errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "job_id": self.context.job_id,
                    "job_kind": self.context.job_kind,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Submission Errors (400-level) ──────────────────────────────

class JobValidationError(PreviewPipelineError):
    """Submission input is invalid: unknown kind, missing guest id, bad options."""
    def __init__(
        self,
        message: str,
        field: str,
        context: ErrorContext | None = None,
        code: str = "VALIDATION_ERROR",
        http_status: int = 400,
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, http_status,
        )
        self.field = field


class SubjectNotFoundError(JobValidationError):
    """Configuration or analysis referenced by a submission does not exist."""
    def __init__(
        self, subject_type: str, subject_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{subject_type} '{subject_id}' not found",
            "subject_id", context, "SUBJECT_NOT_FOUND", 404,
        )
        self.subject_type = subject_type
        self.subject_id = subject_id


class SubjectAccessDeniedError(JobValidationError):
    """Subject exists but belongs to another user."""
    def __init__(
        self, subject_type: str, subject_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{subject_type} '{subject_id}' does not belong to the current user",
            "subject_id", context, "SUBJECT_ACCESS_DENIED", 403,
        )
        self.subject_type = subject_type
        self.subject_id = subject_id


class QuotaExceededError(PreviewPipelineError):
    """Guest reached the free completed-preview limit."""
    def __init__(
        self, guest_client_id: str, limit: int, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Free AI preview limit ({limit}) reached for guest {guest_client_id}. "
            "Please sign up to continue.",
            "QUOTA_EXCEEDED", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.WARNING, context, 429,
        )
        self.guest_client_id = guest_client_id
        self.limit = limit


class ResourceNotFoundError(PreviewPipelineError):
    """Requested resource does not exist (or is not visible to the caller)."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class InvalidTransitionError(PreviewPipelineError):
    """Job status change would break Pending → Processing → {Completed, Failed}."""
    def __init__(
        self, current: str, target: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Cannot move job from '{current}' to '{target}'",
            "INVALID_TRANSITION", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current = current
        self.target = target


# ─── Generation Errors (recorded on the job) ────────────────────

class ProviderError(PreviewPipelineError):
    """Image backend failed: non-success response, malformed payload, bad download."""
    def __init__(
        self,
        message: str,
        provider: str,
        status_code: int | None = None,
        context: ErrorContext | None = None,
        code: str = "PROVIDER_ERROR",
    ):
        ctx = context or ErrorContext()
        ctx.provider = provider
        super().__init__(
            f"{provider} error: {message}",
            code, ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, ctx, 502,
        )
        self.provider = provider
        self.status_code = status_code


class UnsupportedJobKindError(ProviderError):
    """Worker received a job kind it has no generation path for."""
    def __init__(self, kind: str, context: ErrorContext | None = None):
        super().__init__(
            f"Job kind '{kind}' is not supported",
            "worker", None, context, "UNSUPPORTED_JOB_KIND",
        )
        self.kind = kind


class GenerationTimeoutError(PreviewPipelineError):
    """Generation exceeded its per-job deadline or the provider's poll budget."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "GENERATION_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.ERROR, context, 504,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(PreviewPipelineError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
