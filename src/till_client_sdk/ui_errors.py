from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ApiError, BackendUnavailable, ClientValidationError, PreconditionFailed


@dataclass(frozen=True)
class UserFacingError:
    message: str
    details: str | None = None
    trace_id: str | None = None
    code: str | None = None
    retryable: bool = False

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


def to_user_facing_error(exc: Exception) -> UserFacingError:
    """Split an error into a message for a toast and details for an inline panel."""
    if isinstance(exc, ApiError):
        primary = exc.message.strip() or "Request failed"
        details = f"{exc.code} (HTTP {exc.status_code})"
        if exc.details:
            details = f"{details}: {exc.details}"
        return UserFacingError(
            message=primary,
            details=details,
            trace_id=exc.trace_id,
            code=exc.code,
            retryable=isinstance(exc, BackendUnavailable),
        )
    if isinstance(exc, PreconditionFailed):
        return UserFacingError(message=exc.message, details=exc.code, code=exc.code)
    if isinstance(exc, ClientValidationError):
        fields = ", ".join(sorted({issue.field for issue in exc.issues})) or None
        return UserFacingError(message=exc.message, details=fields, code=exc.code)
    return UserFacingError(message=str(exc) or type(exc).__name__)
