from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterable

from .backend import PosBackend
from .exceptions import InsufficientStockError
from .request_ids import new_idempotency_keys
from .models_catalog import EntityId
from .models_stock import StockMovement, StockMovementRequest, StockMovementType
from .money import MoneyLike, to_decimal
from .observability import get_logger, log_action
from .stock_validation import Quantity, compute_new_stock, normalize_level, validate_reason

logger = get_logger(__name__)


@dataclass
class StockBook:
    """Last known stock per product, re-read from the backend once older than the TTL."""

    backend: PosBackend
    ttl_seconds: float = 3.0
    clock: Callable[[], float] = time.monotonic
    _levels: dict[str, tuple[Decimal, float]] = field(default_factory=dict)

    def level(self, product_id: EntityId, *, max_age: float | None = None) -> Decimal:
        key = str(product_id)
        limit = self.ttl_seconds if max_age is None else max_age
        cached = self._levels.get(key)
        if cached is not None and self.clock() - cached[1] < limit:
            return cached[0]
        value = to_decimal(self.backend.get_product_stock(product_id))
        self._levels[key] = (value, self.clock())
        return value

    def cached_level(self, product_id: EntityId) -> Decimal | None:
        cached = self._levels.get(str(product_id))
        return cached[0] if cached is not None else None

    def set_level(self, product_id: EntityId, value: MoneyLike) -> None:
        self._levels[str(product_id)] = (to_decimal(value), self.clock())

    def decrement(self, product_id: EntityId, quantity: MoneyLike) -> None:
        current = self.cached_level(product_id)
        if current is None:
            return
        self.set_level(product_id, current - to_decimal(quantity))

    def invalidate(self, product_ids: Iterable[EntityId] | None = None) -> None:
        if product_ids is None:
            self._levels.clear()
            return
        for product_id in product_ids:
            self._levels.pop(str(product_id), None)

    def ensure_available(self, product_id: EntityId, requested: MoneyLike) -> Decimal:
        available = self.level(product_id)
        wanted = to_decimal(requested)
        if wanted > available:
            raise InsufficientStockError(str(product_id), available=available, requested=wanted)
        return available


@dataclass
class StockLedger:
    """Append-only record of stock movements made from this terminal."""

    backend: PosBackend
    book: StockBook
    user_id: EntityId | None = None
    rows: list[StockMovement] = field(default_factory=list)

    def apply_entry(
        self, product_id: EntityId, quantity: MoneyLike, reason: str, *, discrete: bool = True
    ) -> StockMovement:
        return self._apply(product_id, "entry", quantity, reason, discrete)

    def apply_exit(
        self, product_id: EntityId, quantity: MoneyLike, reason: str, *, discrete: bool = True
    ) -> StockMovement:
        return self._apply(product_id, "exit", quantity, reason, discrete)

    def apply_adjustment(
        self, product_id: EntityId, absolute_quantity: MoneyLike, reason: str, *, discrete: bool = True
    ) -> StockMovement:
        return self._apply(product_id, "adjustment", absolute_quantity, reason, discrete)

    def history(self, product_id: EntityId | None = None) -> list[StockMovement]:
        if product_id is None:
            return list(self.rows)
        return [row for row in self.rows if str(row.product_id) == str(product_id)]

    def _apply(
        self,
        product_id: EntityId,
        movement_type: StockMovementType,
        quantity: MoneyLike,
        reason: str,
        discrete: bool,
    ) -> StockMovement:
        note = validate_reason(reason)
        previous: Quantity = normalize_level(self.book.level(product_id, max_age=0), discrete=discrete)
        recorded, new_stock = compute_new_stock(product_id, movement_type, previous, quantity, discrete=discrete)
        request = StockMovementRequest(
            product_id=product_id,
            type=movement_type,
            quantity=recorded,
            reason=note,
            previous_stock=previous,
            new_stock=new_stock,
        )
        keys = new_idempotency_keys()
        try:
            acknowledged = self.backend.create_stock_movement(request, idempotency_key=keys.idempotency_key)
        except Exception:
            log_action(
                logger, "stock", f"apply_{movement_type}", "error", product_id=product_id, quantity=recorded
            )
            raise
        row = StockMovement(
            id=acknowledged.id,
            product_id=product_id,
            type=movement_type,
            quantity=recorded,
            previous_stock=previous,
            new_stock=new_stock,
            reason=note,
            timestamp=acknowledged.timestamp or datetime.now(timezone.utc),
            user_id=acknowledged.user_id if acknowledged.user_id is not None else self.user_id,
        )
        self.rows.append(row)
        self.book.set_level(product_id, new_stock)
        log_action(
            logger,
            "stock",
            f"apply_{movement_type}",
            "success",
            product_id=product_id,
            previous_stock=previous,
            new_stock=new_stock,
        )
        return row
