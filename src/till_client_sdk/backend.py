"""Contract the core needs from the remote system, and its HTTP implementation."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from .clients.customers_client import CustomersClient
from .clients.pos_cash_client import PosCashClient
from .clients.pos_sales_client import PosSalesClient
from .clients.stock_client import StockClient
from .models_catalog import Customer, EntityId
from .models_pos_cash import (
    CashMovementRequest,
    CashMovementResponse,
    CashSessionSnapshot,
    CashStatusResponse,
)
from .models_pos_sales import SaleCancelResponse, SaleRecord, SaleResponse
from .models_stock import StockMovement, StockMovementRequest


class PosBackend(Protocol):
    def create_sale(self, record: SaleRecord, *, timeout: float | None = None) -> SaleResponse: ...

    def cancel_sale(
        self, sale_id: EntityId, reason: str, *, idempotency_key: str | None = None
    ) -> SaleCancelResponse: ...

    def get_cash_session_status(self) -> CashStatusResponse: ...

    def open_cash_session(
        self, opening_amount: Decimal, notes: str, *, idempotency_key: str | None = None
    ) -> CashSessionSnapshot | None: ...

    def close_cash_session(
        self, notes: str, physical_count: Decimal | None, *, idempotency_key: str | None = None
    ) -> CashSessionSnapshot | None: ...

    def record_cash_movement(
        self, movement: CashMovementRequest, *, idempotency_key: str | None = None
    ) -> CashMovementResponse: ...

    def get_product_stock(self, product_id: EntityId) -> Decimal: ...

    def create_stock_movement(
        self, movement: StockMovementRequest, *, idempotency_key: str | None = None
    ) -> StockMovement: ...

    def get_customer(self, customer_id: EntityId) -> Customer: ...


@dataclass
class HttpBackend:
    sales: PosSalesClient
    cash: PosCashClient
    stock: StockClient
    customers: CustomersClient

    def create_sale(self, record: SaleRecord, *, timeout: float | None = None) -> SaleResponse:
        return self.sales.create_sale(record, timeout=timeout)

    def cancel_sale(
        self, sale_id: EntityId, reason: str, *, idempotency_key: str | None = None
    ) -> SaleCancelResponse:
        return self.sales.cancel_sale(sale_id, reason, idempotency_key=idempotency_key)

    def get_cash_session_status(self) -> CashStatusResponse:
        # The engine applies its own TTL, so always read through to the server.
        return self.cash.get_status(use_cache=False)

    def open_cash_session(
        self, opening_amount: Decimal, notes: str, *, idempotency_key: str | None = None
    ) -> CashSessionSnapshot | None:
        return self.cash.open_session(opening_amount, notes, idempotency_key=idempotency_key)

    def close_cash_session(
        self, notes: str, physical_count: Decimal | None, *, idempotency_key: str | None = None
    ) -> CashSessionSnapshot | None:
        return self.cash.close_session(notes, physical_count, idempotency_key=idempotency_key)

    def record_cash_movement(
        self, movement: CashMovementRequest, *, idempotency_key: str | None = None
    ) -> CashMovementResponse:
        return self.cash.record_movement(movement, idempotency_key=idempotency_key)

    def get_product_stock(self, product_id: EntityId) -> Decimal:
        return self.stock.get_product_stock(product_id).stock

    def create_stock_movement(
        self, movement: StockMovementRequest, *, idempotency_key: str | None = None
    ) -> StockMovement:
        return self.stock.create_movement(movement, idempotency_key=idempotency_key)

    def get_customer(self, customer_id: EntityId) -> Customer:
        return self.customers.get_customer(customer_id)
