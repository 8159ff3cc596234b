from __future__ import annotations

from decimal import Decimal
from typing import Union

from .exceptions import ClientValidationError, InsufficientStockError, ValidationIssue
from .models_catalog import EntityId
from .models_stock import StockMovementType
from .money import MoneyLike, to_decimal, to_quantity

Quantity = Union[int, Decimal]


def _issue(field: str, reason: str) -> ClientValidationError:
    return ClientValidationError([ValidationIssue(field=field, reason=reason)])


def validate_reason(reason: str | None) -> str:
    if reason is None or not reason.strip():
        raise _issue("reason", "is required")
    return reason.strip()


def normalize_level(value: MoneyLike, *, discrete: bool) -> Quantity:
    """Stock level as int for unit products, 3-place Decimal for weighed ones."""
    level = to_decimal(value)
    if discrete:
        return int(level)
    return level.quantize(Decimal("0.001"))


def compute_new_stock(
    product_id: EntityId,
    movement_type: StockMovementType,
    previous: Quantity,
    quantity: MoneyLike,
    *,
    discrete: bool,
) -> tuple[Quantity, Quantity]:
    """Return ``(recorded_quantity, new_stock)`` for a movement.

    Exits larger than the current stock are rejected. Adjustments set the
    level directly and record the signed delta.
    """
    if movement_type == "adjustment":
        target = to_decimal(quantity)
        if target < 0:
            raise _issue("quantity", "must be >= 0")
        new_stock = to_quantity(target, discrete=discrete) if target > 0 else normalize_level(0, discrete=discrete)
        return new_stock - previous, new_stock
    amount = to_quantity(quantity, discrete=discrete)
    if movement_type == "entry":
        return amount, previous + amount
    if movement_type == "exit":
        if amount > previous:
            raise InsufficientStockError(str(product_id), available=previous, requested=amount)
        return amount, previous - amount
    raise _issue("type", "must be entry, exit or adjustment")
