from __future__ import annotations

from dataclasses import dataclass

from .backend import HttpBackend
from .cash_session import CashRegister
from .clients.customers_client import CustomersClient
from .clients.pos_cash_client import PosCashClient
from .clients.pos_sales_client import PosSalesClient
from .clients.stock_client import StockClient
from .config import ClientConfig
from .http_client import HttpClient
from .models_catalog import EntityId
from .sale_pipeline import PosTerminal
from .stock_ledger import StockBook, StockLedger
from .request_ids import TraceContext


@dataclass
class ApiSession:
    """Builds typed clients that share one transport, trace and credentials."""

    config: ClientConfig
    token: str | None = None
    terminal_id: str | None = None
    trace: TraceContext | None = None
    timeout: float | None = None
    http: HttpClient | None = None

    def __post_init__(self) -> None:
        self.trace = self.trace or TraceContext()
        if self.http is None:
            self.http = HttpClient(config=self.config, trace=self.trace)

    def _client_kwargs(self) -> dict:
        return {
            "http": self.http,
            "access_token": self.token,
            "terminal_id": self.terminal_id,
            "timeout": self.timeout,
        }

    def pos_sales_client(self) -> PosSalesClient:
        return PosSalesClient(**self._client_kwargs())

    def pos_cash_client(self) -> PosCashClient:
        return PosCashClient(**self._client_kwargs())

    def stock_client(self) -> StockClient:
        return StockClient(**self._client_kwargs())

    def customers_client(self) -> CustomersClient:
        return CustomersClient(**self._client_kwargs())

    def backend(self) -> HttpBackend:
        return HttpBackend(
            sales=self.pos_sales_client(),
            cash=self.pos_cash_client(),
            stock=self.stock_client(),
            customers=self.customers_client(),
        )

    def terminal(self) -> PosTerminal:
        backend = self.backend()
        return PosTerminal(
            backend=backend,
            cash_register=CashRegister(backend, status_ttl_seconds=self.config.cash_status_ttl_seconds),
            stock=StockBook(backend, ttl_seconds=self.config.stock_ttl_seconds),
            walk_in_document=self.config.walk_in_document,
            commit_timeout=self.timeout,
        )

    def stock_ledger(self, user_id: EntityId | None = None, book: StockBook | None = None) -> StockLedger:
        backend = self.backend()
        if book is None:
            book = StockBook(backend, ttl_seconds=self.config.stock_ttl_seconds)
        return StockLedger(backend=backend, book=book, user_id=user_id)

    def establish(self, token: str) -> None:
        self.token = token
        if self.http is not None:
            self.http.clear_cache()

    def clear(self) -> None:
        self.token = None
        if self.http is not None:
            self.http.clear_cache()
