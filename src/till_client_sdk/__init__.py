from .backend import HttpBackend, PosBackend
from .cart import Cart, CartStats
from .cash_session import CashRegister, CashSession
from .config import ClientConfig, ConfigError, load_config
from .credit_validation import account_total, check_allocations_credit, check_credit_capacity
from .exceptions import (
    ApiError,
    BackendUnavailable,
    CancellationReasonRequiredError,
    CashSessionClosedError,
    ClientValidationError,
    ConflictError,
    CreditLimitExceededError,
    EmptyCartError,
    InsufficientStockError,
    InvalidAllocationError,
    InvalidQuantityError,
    NotFoundError,
    PreconditionFailed,
    SessionAlreadyOpenError,
    SessionNotOpenError,
    ValidationError,
    ValidationIssue,
    WalkInAccountError,
)
from .http_client import HttpClient
from .models_catalog import WALK_IN_CUSTOMER, Customer, Product
from .models_pos_cash import (
    CashClosingResult,
    CashMovementRequest,
    CashSessionSnapshot,
    CashSettings,
    CashStatusResponse,
    DenominationCount,
)
from .models_pos_sales import (
    AccountAllocation,
    CashAllocation,
    CreditAllocation,
    DebitAllocation,
    LineItem,
    PaymentAllocation,
    SaleRecord,
    SaleResponse,
    TransferAllocation,
    allocation_from,
)
from .models_stock import StockMovement, StockMovementRequest
from .payment_validation import AllocationCheck, PaymentAllocator, compute_payment_totals
from .pos_cash_validation import (
    validate_close_session_payload,
    validate_movement_payload,
    validate_open_session_payload,
)
from .request_ids import IdempotencyKeys, TraceContext, new_idempotency_keys
from .sale_pipeline import PosTerminal, SaleCancelResult, SaleCommitResult
from .session import ApiSession
from .stock_ledger import StockBook, StockLedger
from .ui_errors import UserFacingError, to_user_facing_error

__all__ = [
    "AccountAllocation",
    "AllocationCheck",
    "ApiError",
    "ApiSession",
    "BackendUnavailable",
    "CancellationReasonRequiredError",
    "Cart",
    "CartStats",
    "CashAllocation",
    "CashClosingResult",
    "CashMovementRequest",
    "CashRegister",
    "CashSession",
    "CashSessionClosedError",
    "CashSessionSnapshot",
    "CashSettings",
    "CashStatusResponse",
    "ClientConfig",
    "ClientValidationError",
    "ConfigError",
    "ConflictError",
    "CreditAllocation",
    "CreditLimitExceededError",
    "Customer",
    "DebitAllocation",
    "DenominationCount",
    "EmptyCartError",
    "HttpBackend",
    "HttpClient",
    "IdempotencyKeys",
    "InsufficientStockError",
    "InvalidAllocationError",
    "InvalidQuantityError",
    "LineItem",
    "NotFoundError",
    "PaymentAllocation",
    "PaymentAllocator",
    "PosBackend",
    "PosTerminal",
    "PreconditionFailed",
    "Product",
    "SaleCancelResult",
    "SaleCommitResult",
    "SaleRecord",
    "SaleResponse",
    "SessionAlreadyOpenError",
    "SessionNotOpenError",
    "StockBook",
    "StockLedger",
    "StockMovement",
    "StockMovementRequest",
    "TraceContext",
    "TransferAllocation",
    "UserFacingError",
    "ValidationError",
    "ValidationIssue",
    "WALK_IN_CUSTOMER",
    "WalkInAccountError",
    "account_total",
    "allocation_from",
    "check_allocations_credit",
    "check_credit_capacity",
    "compute_payment_totals",
    "load_config",
    "new_idempotency_keys",
    "to_user_facing_error",
    "validate_close_session_payload",
    "validate_movement_payload",
    "validate_open_session_payload",
]
