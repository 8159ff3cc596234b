from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

from .cart import Cart
from .config import DEFAULT_WALK_IN_DOCUMENT
from .exceptions import ClientValidationError, ValidationIssue, WalkInAccountError
from .models_catalog import Customer
from .models_pos_sales import (
    PAYMENT_METHODS,
    AccountAllocation,
    CreditAllocation,
    PaymentAllocation,
    PaymentMethod,
    allocation_from,
)
from .money import MONEY_TOLERANCE, ZERO, MoneyLike, money_sum, to_decimal, to_money

_CARD_LAST4_RE = re.compile(r"^\d{4}$")
_METHOD_FIELDS: dict[str, tuple[str, ...]] = {
    "cash": (),
    "debit": ("card_last4",),
    "credit": ("card_last4", "installments", "interest_rate"),
    "transfer": ("reference",),
    "account": ("customer_id",),
}


@dataclass(frozen=True)
class PaymentTotals:
    total_due: Decimal
    paid_total: Decimal
    missing_amount: Decimal
    change_due: Decimal
    cash_total: Decimal


@dataclass(frozen=True)
class AllocationCheck:
    valid: bool
    total_allocated: Decimal
    difference: Decimal
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def message(self) -> str:
        if not self.issues:
            return "Payment allocation is valid"
        return "; ".join(f"{issue.field}: {issue.reason}" for issue in self.issues)


@dataclass(frozen=True)
class InstallmentPlan:
    installments: int
    interest_rate: Decimal
    total_with_interest: Decimal
    installment_amount: Decimal


def compute_payment_totals(total_due: Decimal, allocations: Sequence[PaymentAllocation]) -> PaymentTotals:
    paid_total = money_sum(allocation.amount for allocation in allocations)
    cash_total = money_sum(allocation.amount for allocation in allocations if allocation.method == "cash")
    return PaymentTotals(
        total_due=total_due,
        paid_total=paid_total,
        missing_amount=max(total_due - paid_total, ZERO),
        change_due=max(paid_total - total_due, ZERO),
        cash_total=cash_total,
    )


def installment_plan(allocation: CreditAllocation) -> InstallmentPlan:
    installments = max(allocation.installments, 1)
    total = to_money(allocation.amount * (1 + allocation.interest_rate / Decimal("100")))
    return InstallmentPlan(
        installments=installments,
        interest_rate=allocation.interest_rate,
        total_with_interest=total,
        installment_amount=to_money(total / installments),
    )


def validate_allocation_entries(
    allocations: Sequence[PaymentAllocation],
    customer: Customer | None,
    *,
    walk_in_document: str = DEFAULT_WALK_IN_DOCUMENT,
) -> list[ValidationIssue]:
    """Per-entry checks: positive amount and the metadata each method needs."""
    issues: list[ValidationIssue] = []
    for idx, allocation in enumerate(allocations):
        prefix = f"allocations[{idx}]"
        if allocation.amount <= 0:
            issues.append(ValidationIssue(field=f"{prefix}.amount", reason="amount must be greater than 0"))
        if allocation.method in ("debit", "credit"):
            if not allocation.card_last4 or not _CARD_LAST4_RE.match(allocation.card_last4):
                issues.append(
                    ValidationIssue(
                        field=f"{prefix}.card_last4",
                        reason=f"last 4 card digits are required for {allocation.method}",
                    )
                )
        if allocation.method == "credit":
            if allocation.installments < 1:
                issues.append(ValidationIssue(field=f"{prefix}.installments", reason="must be at least 1"))
            if allocation.interest_rate < 0:
                issues.append(ValidationIssue(field=f"{prefix}.interest_rate", reason="must be >= 0"))
        if allocation.method == "transfer" and not (allocation.reference or "").strip():
            issues.append(
                ValidationIssue(field=f"{prefix}.reference", reason="reference is required for transfer")
            )
        if allocation.method == "account":
            if customer is None or customer.is_walk_in(walk_in_document):
                issues.append(
                    ValidationIssue(
                        field=f"{prefix}.customer",
                        reason="account payments require a registered customer",
                    )
                )
    return issues


@dataclass
class PaymentAllocator:
    """Single or multi-method payment for the cart it is bound to.

    In single mode the allocation is derived from the cart total on demand.
    In multiple mode the cashier edits an explicit list; while that list
    holds exactly one entry its amount follows the cart total.
    """

    cart: Cart
    walk_in_document: str = DEFAULT_WALK_IN_DOCUMENT
    method: PaymentMethod = "cash"
    customer: Customer | None = None
    multiple: bool = False
    allocations: list[PaymentAllocation] = field(default_factory=list)
    amount_received: Decimal | None = None
    single_metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.cart.subscribe(self._on_cart_changed)

    @property
    def final_total(self) -> Decimal:
        return self.cart.final_total

    @property
    def payment_method(self) -> str:
        return "multiple" if self.multiple else self.method

    @property
    def has_walk_in_customer(self) -> bool:
        return self.customer is None or self.customer.is_walk_in(self.walk_in_document)

    def set_method(self, method: PaymentMethod, **metadata: Any) -> None:
        if method not in PAYMENT_METHODS:
            raise ClientValidationError([ValidationIssue(field="method", reason=f"unknown payment method {method}")])
        if method == "account" and self.has_walk_in_customer:
            raise WalkInAccountError()
        self.method = method
        self.single_metadata = _metadata_for(method, metadata)
        if self.multiple and self.allocations:
            first = self.allocations[0]
            self.allocations[0] = self._build(method, first.amount, self.single_metadata)

    def set_customer(self, customer: Customer | None) -> None:
        self.customer = customer
        if self.method == "account" and self.has_walk_in_customer:
            self.method = "cash"
            self.single_metadata = {}
        # Account entries are bound to whoever is the current customer.
        self.allocations = [
            self._build("account", allocation.amount, {}) if allocation.method == "account" else allocation
            for allocation in self.allocations
        ]

    def set_amount_received(self, amount: MoneyLike | None) -> None:
        if amount is None:
            self.amount_received = None
            return
        received = to_money(amount)
        if received < 0:
            raise ClientValidationError([ValidationIssue(field="amount_received", reason="must be >= 0")])
        self.amount_received = received

    def toggle_multiple(self, enabled: bool) -> None:
        if enabled == self.multiple:
            return
        self.multiple = enabled
        if enabled:
            self.allocations = [self._build(self.method, self.final_total, self.single_metadata)]
        else:
            self.allocations = []

    def add_allocation(self, method: PaymentMethod, amount: MoneyLike, **metadata: Any) -> PaymentAllocation:
        self._require_multiple()
        allocation = self._build(method, to_money(amount), metadata)
        self.allocations.append(allocation)
        return allocation

    def add_remaining(self, method: PaymentMethod = "cash", **metadata: Any) -> PaymentAllocation:
        remaining = max(self.final_total - self.total_allocated(), ZERO)
        return self.add_allocation(method, remaining, **metadata)

    def update_allocation(self, index: int, **patch: Any) -> PaymentAllocation:
        self._require_multiple()
        self._require_index(index)
        current = self.allocations[index]
        method = patch.pop("method", current.method)
        amount = to_money(patch.pop("amount", current.amount))
        metadata = current.model_dump(exclude={"method", "amount"}) if method == current.method else {}
        metadata.update(patch)
        allocation = self._build(method, amount, metadata)
        self.allocations[index] = allocation
        return allocation

    def remove_allocation(self, index: int) -> None:
        self._require_multiple()
        self._require_index(index)
        del self.allocations[index]

    def total_allocated(self) -> Decimal:
        return money_sum(allocation.amount for allocation in self.allocations)

    def current_allocations(self) -> list[PaymentAllocation]:
        if self.multiple:
            return list(self.allocations)
        return [self._build(self.method, self.final_total, self.single_metadata)]

    def validate(self) -> AllocationCheck:
        total = self.final_total
        if not self.multiple:
            return AllocationCheck(valid=True, total_allocated=total, difference=ZERO)
        allocated = self.total_allocated()
        difference = to_money(total - allocated)
        issues: list[ValidationIssue] = []
        if not self.allocations:
            issues.append(ValidationIssue(field="allocations", reason="at least one payment is required"))
        elif abs(difference) >= MONEY_TOLERANCE:
            issues.append(
                ValidationIssue(
                    field="allocations",
                    reason=f"allocated {allocated} does not match total {total}",
                )
            )
        issues.extend(
            validate_allocation_entries(self.allocations, self.customer, walk_in_document=self.walk_in_document)
        )
        return AllocationCheck(valid=not issues, total_allocated=allocated, difference=difference, issues=issues)

    def validate_for_commit(self) -> AllocationCheck:
        """Structural check plus the checks that only apply when charging."""
        check = self.validate()
        if self.multiple:
            return check
        issues = validate_allocation_entries(
            self.current_allocations(), self.customer, walk_in_document=self.walk_in_document
        )
        if self.method == "cash" and self.amount_received is not None and self.amount_received < self.final_total:
            issues.append(
                ValidationIssue(
                    field="amount_received",
                    reason=f"received {self.amount_received} is less than total {self.final_total}",
                )
            )
        return AllocationCheck(
            valid=not issues,
            total_allocated=check.total_allocated,
            difference=check.difference,
            issues=issues,
        )

    def change_due(self) -> Decimal:
        if self.multiple or self.method != "cash" or self.amount_received is None:
            return ZERO
        return max(self.amount_received - self.final_total, ZERO)

    def totals(self) -> PaymentTotals:
        return compute_payment_totals(self.final_total, self.current_allocations())

    def breakdown(self) -> dict[str, Decimal]:
        summary = {method: ZERO for method in PAYMENT_METHODS}
        for allocation in self.current_allocations():
            summary[allocation.method] = to_money(summary[allocation.method] + allocation.amount)
        return summary

    def account_exposure(self) -> Decimal:
        return money_sum(
            allocation.amount for allocation in self.current_allocations() if isinstance(allocation, AccountAllocation)
        )

    def installment_plans(self) -> list[InstallmentPlan]:
        return [
            installment_plan(allocation)
            for allocation in self.current_allocations()
            if isinstance(allocation, CreditAllocation)
        ]

    def reset(self) -> None:
        self.method = "cash"
        self.customer = None
        self.multiple = False
        self.allocations = []
        self.amount_received = None
        self.single_metadata = {}

    def _build(self, method: str, amount: Decimal, metadata: dict[str, Any]) -> PaymentAllocation:
        values = _metadata_for(method, metadata)
        if method == "account":
            values["customer_id"] = self.customer.id if self.customer is not None else None
        try:
            return allocation_from(method, to_decimal(amount), **values)
        except ValueError as exc:
            raise ClientValidationError([ValidationIssue(field="allocation", reason=str(exc))]) from exc

    def _require_multiple(self) -> None:
        if not self.multiple:
            raise ClientValidationError(
                [ValidationIssue(field="allocations", reason="multiple payment mode is not enabled")]
            )

    def _require_index(self, index: int) -> None:
        if not 0 <= index < len(self.allocations):
            raise ClientValidationError([ValidationIssue(field=f"allocations[{index}]", reason="no such allocation")])

    def _on_cart_changed(self, cart: Cart) -> None:
        if self.multiple and len(self.allocations) == 1:
            only = self.allocations[0]
            self.allocations[0] = only.model_copy(update={"amount": cart.final_total})


def _metadata_for(method: str, metadata: dict[str, Any]) -> dict[str, Any]:
    allowed = _METHOD_FIELDS.get(method, ())
    return {key: value for key, value in metadata.items() if key in allowed and value is not None}
