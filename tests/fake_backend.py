"""In-memory backend for engine tests.

Applies sale, cash and stock effects with the same domain objects the client
uses, honours idempotency keys, and lets a test queue failures per operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from till_client_sdk.cash_session import CashRegister, CashSession
from till_client_sdk.exceptions import BackendUnavailable, ConflictError, SessionAlreadyOpenError, SessionNotOpenError
from till_client_sdk.models_catalog import Customer, Product
from till_client_sdk.models_pos_cash import (
    CashMovementRequest,
    CashMovementResponse,
    CashSessionSnapshot,
    CashSettings,
    CashStatusResponse,
)
from till_client_sdk.models_pos_sales import SaleCancelResponse, SaleRecord, SaleResponse
from till_client_sdk.models_stock import StockMovement, StockMovementRequest
from till_client_sdk.sale_pipeline import PosTerminal
from till_client_sdk.stock_ledger import StockBook


def unavailable(message: str = "timed out") -> BackendUnavailable:
    return BackendUnavailable(code="TIMEOUT", message=message, details=None, trace_id=None, status_code=0)


def conflict(message: str = "Stock changed") -> ConflictError:
    return ConflictError(code="CONFLICT", message=message, details=None, trace_id="trace-1", status_code=409)


@dataclass
class ManualClock:
    now: float = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeBackend:
    stock: dict[str, Decimal] = field(default_factory=dict)
    customers: dict[str, Customer] = field(default_factory=dict)
    settings: CashSettings = field(default_factory=CashSettings)
    session: CashSession | None = None
    sales: dict[str, tuple[SaleRecord, SaleResponse]] = field(default_factory=dict)
    sales_by_key: dict[str, SaleResponse] = field(default_factory=dict)
    failures: dict[str, list[Exception | None]] = field(default_factory=dict)
    lost_acks: set[str] = field(default_factory=set)
    rejected_cancels: set[str] = field(default_factory=set)
    calls: list[str] = field(default_factory=list)
    sale_keys: list[str] = field(default_factory=list)

    def fail(self, operation: str, *outcomes: Exception | None) -> None:
        self.failures.setdefault(operation, []).extend(outcomes)

    def _call(self, operation: str) -> None:
        self.calls.append(operation)
        queue = self.failures.get(operation)
        if queue:
            outcome = queue.pop(0)
            if outcome is not None:
                raise outcome

    def open_session(self, opening_amount: Decimal | str = "1000") -> CashSession:
        self.session = CashSession.open(Decimal(str(opening_amount)), session_id="session-1", settings=self.settings)
        return self.session

    def create_sale(self, record: SaleRecord, *, timeout: float | None = None) -> SaleResponse:
        self.sale_keys.append(record.idempotency_key)
        self._call("create_sale")
        if record.idempotency_key in self.sales_by_key:
            return self.sales_by_key[record.idempotency_key]
        if self.session is None or not self.session.is_open:
            raise conflict("No open cash session")
        for line in record.items:
            if Decimal(str(line.quantity)) > self.stock.get(str(line.product_id), Decimal("0")):
                raise conflict(f"Insufficient stock for {line.product_id}")
        for line in record.items:
            self.stock[str(line.product_id)] -= Decimal(str(line.quantity))
        self.session.record_sale(record.payment_allocations)
        account = sum((a.amount for a in record.payment_allocations if a.method == "account"), Decimal("0"))
        if account and record.customer_id is not None:
            customer = self.customers[str(record.customer_id)]
            self.customers[str(record.customer_id)] = customer.model_copy(
                update={"current_balance": customer.current_balance + account}
            )
        sale = SaleResponse(
            id=f"sale-{len(self.sales) + 1}",
            status="completed",
            total=record.total,
            customer_id=record.customer_id,
            payment_method=record.payment_method,
            items=[{"product_id": line.product_id, "quantity": str(line.quantity)} for line in record.items],
        )
        self.sales[str(sale.id)] = (record, sale)
        self.sales_by_key[record.idempotency_key] = sale
        if "create_sale" in self.lost_acks:
            self.lost_acks.discard("create_sale")
            raise unavailable("connection reset after commit")
        return sale

    def cancel_sale(self, sale_id: Any, reason: str, *, idempotency_key: str | None = None) -> SaleCancelResponse:
        self._call("cancel_sale")
        if str(sale_id) in self.rejected_cancels:
            return SaleCancelResponse(success=False, message="Sale already cancelled")
        record, sale = self.sales[str(sale_id)]
        for line in record.items:
            self.stock[str(line.product_id)] += Decimal(str(line.quantity))
        if self.session is not None and self.session.is_open:
            self.session.record_cancellation(record.payment_allocations)
        self.sales[str(sale_id)] = (record, sale.model_copy(update={"status": "cancelled"}))
        return SaleCancelResponse(success=True, message="Sale cancelled")

    def get_cash_session_status(self) -> CashStatusResponse:
        self._call("get_cash_session_status")
        snapshot = self.session.to_snapshot() if self.session is not None else None
        return CashStatusResponse(session=snapshot, settings=self.settings)

    def open_cash_session(
        self, opening_amount: Decimal, notes: str, *, idempotency_key: str | None = None
    ) -> CashSessionSnapshot | None:
        self._call("open_cash_session")
        if self.session is not None and self.session.is_open:
            raise SessionAlreadyOpenError()
        return self.open_session(opening_amount).to_snapshot()

    def close_cash_session(
        self, notes: str, physical_count: Decimal | None, *, idempotency_key: str | None = None
    ) -> CashSessionSnapshot | None:
        self._call("close_cash_session")
        if self.session is None or not self.session.is_open:
            raise SessionNotOpenError()
        self.session.close(notes, physical_count)
        return self.session.to_snapshot()

    def record_cash_movement(
        self, movement: CashMovementRequest, *, idempotency_key: str | None = None
    ) -> CashMovementResponse:
        self._call("record_cash_movement")
        if self.session is None or not self.session.is_open:
            raise SessionNotOpenError()
        self.session.record_movement(movement.type, movement.amount, movement.description)
        return CashMovementResponse(
            id=f"mov-{len(self.calls)}",
            type=movement.type,
            amount=movement.amount,
            description=movement.description,
            session_id=self.session.id,
        )

    def get_product_stock(self, product_id: Any) -> Decimal:
        self._call("get_product_stock")
        return self.stock.get(str(product_id), Decimal("0"))

    def create_stock_movement(
        self, movement: StockMovementRequest, *, idempotency_key: str | None = None
    ) -> StockMovement:
        self._call("create_stock_movement")
        self.stock[str(movement.product_id)] = Decimal(str(movement.new_stock))
        return StockMovement(id=f"stock-{len(self.calls)}", **movement.model_dump())

    def get_customer(self, customer_id: Any) -> Customer:
        self._call("get_customer")
        return self.customers[str(customer_id)]


def make_product(
    product_id: str = "p1",
    price_cash: str = "250",
    price_list: str = "300",
    stock: str = "10",
    unit_type: str = "unit",
) -> Product:
    return Product(
        id=product_id,
        name=f"Product {product_id}",
        price_cash=Decimal(price_cash),
        price_list=Decimal(price_list),
        stock=Decimal(stock),
        unit_type=unit_type,
    )


def make_terminal(backend: FakeBackend, clock: ManualClock | None = None) -> PosTerminal:
    clock = clock or ManualClock()
    return PosTerminal(
        backend=backend,
        cash_register=CashRegister(backend, status_ttl_seconds=2.0, clock=clock),
        stock=StockBook(backend, ttl_seconds=3.0, clock=clock),
    )
