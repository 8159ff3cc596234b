from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    trace_id: str | None
    status_code: int
    raw_payload: object | None = None

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class UnauthorizedError(ApiError):
    pass


class ForbiddenError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class ValidationError(ApiError):
    """Backend rejected the request shape or range (400/422)."""


class AuthError(UnauthorizedError):
    """Authentication failed or session is invalid."""


class PermissionError(ForbiddenError):
    """Authorization denied by the backend."""


class ConflictError(ApiError):
    """Backend rejected the mutation because shared state changed underneath it."""


class BackendUnavailable(ApiError):
    """Network failure, timeout or server-side outage. Safe to retry with backoff."""


class RateLimitError(BackendUnavailable):
    """429 throttling error."""


class ServerError(BackendUnavailable):
    """5xx server-side failures."""


# Local errors


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    reason: str


class ClientValidationError(ValueError):
    code = "VALIDATION_ERROR"

    def __init__(self, issues: list[ValidationIssue]) -> None:
        self.issues = issues
        super().__init__(self._format_message())

    @property
    def message(self) -> str:
        return str(self)

    def _format_message(self) -> str:
        if not self.issues:
            return "Validation failed"
        return "; ".join(f"{issue.field}: {issue.reason}" for issue in self.issues)


class InvalidQuantityError(ClientValidationError):
    code = "INVALID_QUANTITY"


class PreconditionFailed(Exception):
    """A business precondition does not hold. The caller must correct state before retrying."""

    reason = "PRECONDITION_FAILED"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.reason


class EmptyCartError(PreconditionFailed):
    reason = "EMPTY_CART"

    def __init__(self, message: str = "The cart is empty") -> None:
        super().__init__(message)


class CashSessionClosedError(PreconditionFailed):
    reason = "CASH_SESSION_CLOSED"

    def __init__(self, message: str = "The sale cannot be processed: the cash session is closed") -> None:
        super().__init__(message)


class InvalidAllocationError(PreconditionFailed):
    reason = "INVALID_ALLOCATION"

    def __init__(self, message: str, issues: list[ValidationIssue] | None = None) -> None:
        self.issues = issues or []
        super().__init__(message)


class InsufficientStockError(PreconditionFailed):
    reason = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, available: Decimal | int, requested: Decimal | int) -> None:
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: available {available}, requested {requested}"
        )


class CreditLimitExceededError(PreconditionFailed):
    reason = "CREDIT_LIMIT_EXCEEDED"

    def __init__(self, customer_id: str, available: Decimal, requested: Decimal) -> None:
        self.customer_id = customer_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Account amount {requested} exceeds the available credit {available} for customer {customer_id}"
        )


class WalkInAccountError(PreconditionFailed):
    reason = "WALK_IN_ACCOUNT"

    def __init__(self, message: str = "A registered customer is required for account payments") -> None:
        super().__init__(message)


class SessionAlreadyOpenError(PreconditionFailed):
    reason = "SESSION_ALREADY_OPEN"

    def __init__(self, message: str = "A cash session is already open") -> None:
        super().__init__(message)


class SessionNotOpenError(PreconditionFailed):
    reason = "SESSION_NOT_OPEN"

    def __init__(self, message: str = "No cash session is open") -> None:
        super().__init__(message)


class CancellationReasonRequiredError(PreconditionFailed):
    reason = "CANCEL_REASON_REQUIRED"

    def __init__(self, message: str = "A reason is required to cancel a sale") -> None:
        super().__init__(message)
