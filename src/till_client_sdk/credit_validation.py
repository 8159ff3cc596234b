from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from .config import DEFAULT_WALK_IN_DOCUMENT
from .exceptions import CreditLimitExceededError, WalkInAccountError
from .models_catalog import Customer
from .models_pos_sales import PaymentAllocation
from .money import ZERO, MoneyLike, money_sum, to_money


def account_total(allocations: Sequence[PaymentAllocation]) -> Decimal:
    """Combined exposure of every account allocation in one sale."""
    return money_sum(allocation.amount for allocation in allocations if allocation.method == "account")


def check_credit_capacity(
    customer: Customer | None,
    amount: MoneyLike,
    *,
    walk_in_document: str = DEFAULT_WALK_IN_DOCUMENT,
) -> Decimal:
    """Raise unless ``customer`` can take ``amount`` more on account.

    Returns the credit left after the charge.
    """
    if customer is None or customer.is_walk_in(walk_in_document):
        raise WalkInAccountError()
    requested = to_money(amount)
    if customer.current_balance + requested > customer.credit_limit:
        raise CreditLimitExceededError(str(customer.id), available=customer.available_credit, requested=requested)
    return to_money(customer.credit_limit - customer.current_balance - requested)


def check_allocations_credit(
    customer: Customer | None,
    allocations: Sequence[PaymentAllocation],
    *,
    walk_in_document: str = DEFAULT_WALK_IN_DOCUMENT,
) -> Decimal | None:
    exposure = account_total(allocations)
    if exposure <= ZERO:
        return None
    return check_credit_capacity(customer, exposure, walk_in_document=walk_in_document)
