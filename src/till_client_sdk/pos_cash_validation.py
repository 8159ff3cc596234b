from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .exceptions import ClientValidationError, ValidationIssue
from .models_pos_cash import MANUAL_MOVEMENT_TYPES


@dataclass(frozen=True)
class CashValidationResult:
    ok: bool
    issues: list[ValidationIssue]

    def raise_for_issues(self) -> None:
        if not self.ok:
            raise ClientValidationError(self.issues)


def _require_positive_amount(value: Decimal | None, field: str, issues: list[ValidationIssue]) -> None:
    if value is None:
        issues.append(ValidationIssue(field=field, reason="is required"))
        return
    if value <= 0:
        issues.append(ValidationIssue(field=field, reason="must be greater than 0"))


def _require_non_empty(value: str | None, field: str, issues: list[ValidationIssue]) -> None:
    if value is None or not value.strip():
        issues.append(ValidationIssue(field=field, reason="is required"))


def validate_open_session_payload(opening_amount: Decimal | None) -> CashValidationResult:
    issues: list[ValidationIssue] = []
    if opening_amount is None:
        issues.append(ValidationIssue(field="opening_amount", reason="is required"))
    elif opening_amount < 0:
        issues.append(ValidationIssue(field="opening_amount", reason="must be >= 0"))
    return CashValidationResult(ok=not issues, issues=issues)


def validate_movement_payload(
    movement_type: str,
    amount: Decimal | None,
    description: str | None,
    *,
    expected_cash: Decimal | None = None,
    allow_negative_cash: bool = True,
) -> CashValidationResult:
    issues: list[ValidationIssue] = []
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        issues.append(ValidationIssue(field="type", reason="must be deposit, withdrawal or expense"))
    _require_positive_amount(amount, "amount", issues)
    _require_non_empty(description, "description", issues)
    takes_cash_out = movement_type in ("withdrawal", "expense")
    if takes_cash_out and not allow_negative_cash and expected_cash is not None and amount is not None:
        if expected_cash - amount < 0:
            issues.append(ValidationIssue(field="amount", reason="would result in negative drawer balance"))
    return CashValidationResult(ok=not issues, issues=issues)


def validate_close_session_payload(
    physical_count: Decimal | None,
    *,
    require_count: bool = False,
) -> CashValidationResult:
    issues: list[ValidationIssue] = []
    if physical_count is None:
        if require_count:
            issues.append(ValidationIssue(field="physical_count", reason="is required"))
    elif physical_count < 0:
        issues.append(ValidationIssue(field="physical_count", reason="must be >= 0"))
    return CashValidationResult(ok=not issues, issues=issues)
