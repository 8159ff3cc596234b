"""Decimal-safe money and quantity helpers.

All amounts are carried as :class:`~decimal.Decimal` with two places and
rounded half-up. Quantities are integers for discrete-unit products and
decimals with at most three places for weighed products.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

from .exceptions import ClientValidationError, InvalidQuantityError, ValidationIssue

MoneyLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MONEY_TOLERANCE = Decimal("0.01")
MONEY_SCALE = 2
WEIGHED_QUANTITY_SCALE = 3
_QUANTITY_STEP = Decimal("0.001")


def to_decimal(value: MoneyLike | None) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal value: {value!r}") from exc


def parse_finite(
    value: MoneyLike, *, field: str, error: type[ClientValidationError] = ClientValidationError
) -> Decimal:
    """Parse user input into a finite Decimal, raising ``error`` for anything else."""
    try:
        amount = to_decimal(value)
    except ValueError as exc:
        raise error([ValidationIssue(field=field, reason=str(exc))]) from exc
    if not amount.is_finite():
        raise error([ValidationIssue(field=field, reason="must be a finite number")])
    return amount


def to_money(value: MoneyLike | None) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[MoneyLike]) -> Decimal:
    return to_money(sum((to_decimal(value) for value in values), ZERO))


def within_tolerance(left: MoneyLike, right: MoneyLike, tolerance: Decimal = MONEY_TOLERANCE) -> bool:
    return abs(to_decimal(left) - to_decimal(right)) < tolerance


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    return max(lower, min(value, upper))


def _scale_of(value: Decimal) -> int:
    exponent = value.normalize().as_tuple().exponent
    if not isinstance(exponent, int):
        return 0
    return max(0, -exponent)


def to_quantity(value: MoneyLike, *, discrete: bool, field: str = "quantity") -> int | Decimal:
    """Validate and normalize a quantity.

    Discrete-unit products accept positive integers only (``2`` and ``2.0``
    are fine, ``2.5`` is not). Weighed products accept positive decimals with
    up to three places.
    """
    amount = parse_finite(value, field=field, error=InvalidQuantityError)
    if amount <= 0:
        raise InvalidQuantityError([ValidationIssue(field=field, reason="must be greater than 0")])
    if discrete:
        if amount != amount.to_integral_value():
            raise InvalidQuantityError(
                [ValidationIssue(field=field, reason="must be a whole number for unit products")]
            )
        return int(amount)
    if _scale_of(amount) > WEIGHED_QUANTITY_SCALE:
        raise InvalidQuantityError(
            [ValidationIssue(field=field, reason=f"allows at most {WEIGHED_QUANTITY_SCALE} decimal places")]
        )
    return amount.quantize(_QUANTITY_STEP)
