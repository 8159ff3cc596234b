"""Sale commit and cancellation for one terminal.

:class:`PosTerminal` owns the cart and payment allocator for the sale being
rung up. ``commit_sale`` checks its preconditions in a fixed order, submits
an immutable :class:`~till_client_sdk.models_pos_sales.SaleRecord`, and only
after the backend acknowledges it applies the local effects: stock
decrement, cart reset and a cash session refresh. Nothing local changes when
the submission fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from .backend import PosBackend
from .cart import Cart
from .cash_session import CashRegister
from .config import DEFAULT_WALK_IN_DOCUMENT
from .credit_validation import account_total, check_credit_capacity
from .exceptions import (
    ApiError,
    BackendUnavailable,
    CancellationReasonRequiredError,
    EmptyCartError,
    InsufficientStockError,
    InvalidAllocationError,
    PreconditionFailed,
)
from .request_ids import new_idempotency_keys
from .models_catalog import Customer, EntityId, PriceTier, Product
from .models_pos_sales import LineItem, SaleCancelResponse, SaleLinePayload, SaleRecord, SaleResponse
from .money import ZERO, MoneyLike
from .observability import get_logger, log_action
from .payment_validation import PaymentAllocator
from .stock_ledger import StockBook

logger = get_logger(__name__)


@dataclass(frozen=True)
class SaleCommitResult:
    sale: SaleResponse
    record: SaleRecord
    change_due: Decimal
    cash_refreshed: bool


@dataclass(frozen=True)
class SaleCancelResult:
    sale_id: EntityId
    response: SaleCancelResponse
    cash_refreshed: bool


@dataclass
class PosTerminal:
    backend: PosBackend
    cash_register: CashRegister
    stock: StockBook
    walk_in_document: str = DEFAULT_WALK_IN_DOCUMENT
    commit_timeout: float | None = None
    cart: Cart = field(default_factory=Cart)
    payments: PaymentAllocator | None = None
    sales: list[SaleResponse] = field(default_factory=list)
    last_sale: SaleResponse | None = None
    _pending: tuple[int, str] | None = None

    def __post_init__(self) -> None:
        if self.payments is None:
            self.payments = PaymentAllocator(self.cart, walk_in_document=self.walk_in_document)

    @property
    def allocator(self) -> PaymentAllocator:
        assert self.payments is not None
        return self.payments

    @property
    def customer(self) -> Customer | None:
        return self.allocator.customer

    def add_item(self, product: Product, quantity: MoneyLike, price_tier: PriceTier = "cash") -> LineItem:
        available = self.stock.cached_level(product.id)
        return self.cart.add_or_replace_item(product, quantity, price_tier, available_stock=available)

    def update_quantity(self, product_id: EntityId, price_tier: PriceTier, quantity: MoneyLike) -> LineItem | None:
        available = self.stock.cached_level(product_id)
        return self.cart.update_quantity(product_id, price_tier, quantity, available_stock=available)

    def remove_item(self, product_id: EntityId, price_tier: PriceTier) -> None:
        self.cart.remove_item(product_id, price_tier)

    def set_customer(self, customer: Customer | None) -> None:
        self.allocator.set_customer(customer)

    def clear(self) -> None:
        self.cart.clear()
        self.allocator.reset()
        self._pending = None

    def check_preconditions(self) -> None:
        """Raise the first failing commit precondition, in commit order."""
        if self.cart.is_empty:
            raise EmptyCartError()
        self.cash_register.require_open()
        check = self.allocator.validate_for_commit()
        if not check.valid:
            raise InvalidAllocationError(check.message, check.issues)
        self._check_stock()
        self._check_credit()

    def commit_sale(self, *, notes: str | None = None) -> SaleCommitResult:
        self.check_preconditions()
        record = self._build_record(notes)
        try:
            sale = self.backend.create_sale(record, timeout=self.commit_timeout)
        except BackendUnavailable:
            # Unacknowledged: a retry of this cart revision reuses the key.
            log_action(logger, "sales", "commit", "unavailable", total=record.total)
            raise
        except ApiError as exc:
            self._pending = None
            log_action(logger, "sales", "commit", "rejected", exc.trace_id, code=exc.code, total=record.total)
            raise

        change_due = self.allocator.change_due()
        for item in self.cart.items:
            self.stock.decrement(item.product_id, item.quantity)
        self.sales.insert(0, sale)
        self.last_sale = sale
        self.clear()
        cash_refreshed = self._refresh_cash("commit")
        log_action(
            logger,
            "sales",
            "commit",
            "success",
            sale_id=sale.id,
            total=record.total,
            payment_method=record.payment_method,
        )
        return SaleCommitResult(sale=sale, record=record, change_due=change_due, cash_refreshed=cash_refreshed)

    def cancel_sale(self, sale_id: EntityId, reason: str) -> SaleCancelResult:
        note = (reason or "").strip()
        if not note:
            raise CancellationReasonRequiredError()
        keys = new_idempotency_keys()
        try:
            response = self.backend.cancel_sale(sale_id, note, idempotency_key=keys.idempotency_key)
        except ApiError as exc:
            log_action(logger, "sales", "cancel", "error", exc.trace_id, sale_id=sale_id, code=exc.code)
            raise
        if not response.success:
            log_action(logger, "sales", "cancel", "rejected", sale_id=sale_id)
            raise ApiError(
                code="CANCEL_REJECTED",
                message=response.message or "The sale could not be cancelled",
                details=None,
                trace_id=None,
                status_code=200,
            )
        cancelled = self._relabel_cancelled(sale_id, note)
        self.stock.invalidate(_product_ids(cancelled) if cancelled is not None else None)
        cash_refreshed = self._refresh_cash("cancel")
        log_action(logger, "sales", "cancel", "success", sale_id=sale_id)
        return SaleCancelResult(sale_id=sale_id, response=response, cash_refreshed=cash_refreshed)

    def find_sale(self, sale_id: EntityId) -> SaleResponse | None:
        for sale in self.sales:
            if str(sale.id) == str(sale_id):
                return sale
        return None

    def _check_stock(self) -> None:
        requested: dict[str, Decimal] = {}
        for item in self.cart.items:
            key = str(item.product_id)
            requested[key] = requested.get(key, Decimal("0")) + Decimal(str(item.quantity))
        for product_id, quantity in requested.items():
            available = self.stock.level(product_id)
            if quantity > available:
                raise InsufficientStockError(product_id, available=available, requested=quantity)

    def _check_credit(self) -> None:
        exposure = account_total(self.allocator.current_allocations())
        if exposure <= ZERO:
            return
        customer = self.customer
        if customer is not None and not customer.is_walk_in(self.walk_in_document):
            # Balances move with other terminals; check against a fresh one.
            customer = self.backend.get_customer(customer.id)
        check_credit_capacity(customer, exposure, walk_in_document=self.walk_in_document)

    def _build_record(self, notes: str | None) -> SaleRecord:
        revision = self.cart.revision
        if self._pending is None or self._pending[0] != revision:
            self._pending = (revision, new_idempotency_keys().idempotency_key)
        customer = self.customer
        customer_id = None
        if customer is not None and not customer.is_walk_in(self.walk_in_document):
            customer_id = customer.id
        allocations = self.allocator.current_allocations()
        return SaleRecord(
            idempotency_key=self._pending[1],
            items=tuple(
                SaleLinePayload(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.line_total,
                    price_type=item.price_tier,
                )
                for item in self.cart.items
            ),
            subtotal=self.cart.subtotal,
            discount=self.cart.discount,
            tax=self.cart.tax_amount,
            total=self.cart.final_total,
            customer_id=customer_id,
            payment_method=self.allocator.payment_method,
            payment_allocations=tuple(allocations),
            amount_received=self.allocator.amount_received,
            change=self.allocator.change_due(),
            timestamp=datetime.now(timezone.utc),
            notes=notes,
        )

    def _relabel_cancelled(self, sale_id: EntityId, reason: str) -> SaleResponse | None:
        for idx, sale in enumerate(self.sales):
            if str(sale.id) != str(sale_id):
                continue
            label = f"Cancelled: {reason}"
            notes = f"{sale.notes}\n{label}" if sale.notes else label
            updated = sale.model_copy(update={"status": "cancelled", "notes": notes})
            self.sales[idx] = updated
            if self.last_sale is not None and str(self.last_sale.id) == str(sale_id):
                self.last_sale = updated
            return updated
        return None

    def _refresh_cash(self, action: str) -> bool:
        try:
            self.cash_register.refresh(force=True)
        except (ApiError, PreconditionFailed) as exc:
            # The backend already acknowledged the mutation; only the cached session is stale.
            self.cash_register.invalidate()
            outcome = "unavailable" if isinstance(exc, BackendUnavailable) else "error"
            trace_id = exc.trace_id if isinstance(exc, ApiError) else None
            log_action(logger, "sales", f"{action}_cash_refresh", outcome, trace_id, code=exc.code)
            return False
        return True


def _product_ids(sale: SaleResponse) -> list[Any] | None:
    ids = [item.get("product_id") for item in sale.items if item.get("product_id") is not None]
    return ids or None
