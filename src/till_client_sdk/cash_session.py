"""Cash session running totals and the register that keeps them in sync.

:class:`CashSession` holds one session's authoritative buckets; every derived
figure (expected cash, income, outcome, net) is recomputed from them on read.
:class:`CashRegister` wraps a :class:`~till_client_sdk.backend.PosBackend`,
refreshes the session snapshot on a short TTL and guards the open/close
lifecycle.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Sequence

from .backend import PosBackend
from .exceptions import (
    CashSessionClosedError,
    ClientValidationError,
    SessionAlreadyOpenError,
    SessionNotOpenError,
    ValidationIssue,
)
from .request_ids import new_idempotency_keys
from .models_catalog import EntityId
from .models_pos_cash import (
    CashClosingResult,
    CashLevelAlert,
    CashMovementRequest,
    CashMovementResponse,
    CashMovementType,
    CashSessionSnapshot,
    CashSettings,
    DenominationCount,
)
from .models_pos_sales import PaymentAllocation
from .money import ZERO, MoneyLike, money_sum, to_money
from .observability import get_logger, log_action
from .pos_cash_validation import (
    validate_close_session_payload,
    validate_movement_payload,
    validate_open_session_payload,
)

logger = get_logger(__name__)

SALE_BUCKETS: dict[str, str] = {
    "cash": "cash_sales",
    "credit": "credit_card_sales",
    "debit": "debit_card_sales",
    "transfer": "transfer_sales",
    "account": "account_payments",
}
MOVEMENT_BUCKETS: dict[str, str] = {
    "deposit": "deposits",
    "withdrawal": "withdrawals",
    "expense": "expenses",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CashSession:
    id: EntityId | None
    opening_amount: Decimal
    opening_time: datetime
    is_open: bool = True
    notes: str = ""
    settings: CashSettings = field(default_factory=CashSettings)
    cash_sales: Decimal = ZERO
    credit_card_sales: Decimal = ZERO
    debit_card_sales: Decimal = ZERO
    transfer_sales: Decimal = ZERO
    account_payments: Decimal = ZERO
    deposits: Decimal = ZERO
    expenses: Decimal = ZERO
    withdrawals: Decimal = ZERO
    cash_cancellations: Decimal = ZERO
    other_cancellations: Decimal = ZERO
    sale_count: int = 0
    closing_amount: Decimal | None = None
    difference: Decimal | None = None
    closed_at: datetime | None = None

    @classmethod
    def open(
        cls,
        opening_amount: MoneyLike,
        notes: str = "",
        *,
        session_id: EntityId | None = None,
        settings: CashSettings | None = None,
        now: datetime | None = None,
    ) -> "CashSession":
        amount = to_money(opening_amount)
        validate_open_session_payload(amount).raise_for_issues()
        return cls(
            id=session_id if session_id is not None else str(uuid.uuid4()),
            opening_amount=amount,
            opening_time=now or _now(),
            notes=notes or "",
            settings=settings or CashSettings(),
        )

    @classmethod
    def from_snapshot(cls, snapshot: CashSessionSnapshot, settings: CashSettings | None = None) -> "CashSession":
        return cls(
            id=snapshot.id,
            opening_amount=to_money(snapshot.opening_amount),
            opening_time=snapshot.opening_date or _now(),
            is_open=snapshot.status == "open",
            notes=snapshot.notes or "",
            settings=settings or CashSettings(),
            cash_sales=to_money(snapshot.cash_sales),
            credit_card_sales=to_money(snapshot.credit_card_sales),
            debit_card_sales=to_money(snapshot.debit_card_sales),
            transfer_sales=to_money(snapshot.transfer_sales),
            account_payments=to_money(snapshot.account_payments),
            deposits=to_money(snapshot.deposits),
            expenses=to_money(snapshot.expenses),
            withdrawals=to_money(snapshot.withdrawals),
            cash_cancellations=to_money(snapshot.cash_cancellations),
            other_cancellations=to_money(snapshot.other_cancellations),
            sale_count=snapshot.sale_count,
            closing_amount=snapshot.closing_amount,
            difference=snapshot.difference,
            closed_at=snapshot.closed_at,
        )

    def to_snapshot(self) -> CashSessionSnapshot:
        return CashSessionSnapshot(
            id=self.id,
            status="open" if self.is_open else "closed",
            opening_amount=self.opening_amount,
            opening_date=self.opening_time,
            notes=self.notes,
            cash_sales=self.cash_sales,
            credit_card_sales=self.credit_card_sales,
            debit_card_sales=self.debit_card_sales,
            transfer_sales=self.transfer_sales,
            account_payments=self.account_payments,
            deposits=self.deposits,
            expenses=self.expenses,
            withdrawals=self.withdrawals,
            cash_cancellations=self.cash_cancellations,
            other_cancellations=self.other_cancellations,
            sale_count=self.sale_count,
            closing_amount=self.closing_amount,
            difference=self.difference,
            closed_at=self.closed_at,
        )

    @property
    def card_sales(self) -> Decimal:
        return to_money(self.credit_card_sales + self.debit_card_sales)

    @property
    def cancellations(self) -> Decimal:
        return to_money(self.cash_cancellations + self.other_cancellations)

    @property
    def expected_physical_cash(self) -> Decimal:
        return self.compute_expected_cash()

    @property
    def total_income(self) -> Decimal:
        return money_sum(
            [self.cash_sales, self.card_sales, self.transfer_sales, self.account_payments, self.deposits]
        )

    @property
    def total_outcome(self) -> Decimal:
        return money_sum([self.expenses, self.withdrawals, self.cancellations])

    @property
    def net_earnings(self) -> Decimal:
        return to_money(self.total_income - self.total_outcome)

    def compute_expected_cash(self) -> Decimal:
        return to_money(
            self.opening_amount
            + self.cash_sales
            + self.deposits
            - self.expenses
            - self.withdrawals
            - self.cash_cancellations
        )

    @staticmethod
    def bucket_for(movement_type: CashMovementType, method: str | None = None) -> str:
        if movement_type in MOVEMENT_BUCKETS:
            return MOVEMENT_BUCKETS[movement_type]
        if movement_type == "sale":
            if method not in SALE_BUCKETS:
                raise ClientValidationError([ValidationIssue(field="method", reason="unknown payment method")])
            return SALE_BUCKETS[method]
        if movement_type == "cancellation":
            return "cash_cancellations" if method == "cash" else "other_cancellations"
        raise ClientValidationError([ValidationIssue(field="type", reason=f"unknown movement type {movement_type}")])

    def record_movement(
        self,
        movement_type: CashMovementType,
        amount: MoneyLike,
        description: str = "",
        *,
        method: str | None = None,
    ) -> str:
        """Add ``amount`` to exactly one bucket and return the bucket name."""
        if not self.is_open:
            raise SessionNotOpenError()
        value = to_money(amount)
        if value <= 0:
            raise ClientValidationError([ValidationIssue(field="amount", reason="must be greater than 0")])
        bucket = self.bucket_for(movement_type, method)
        if movement_type in ("withdrawal", "expense"):
            validate_movement_payload(
                movement_type,
                value,
                description or movement_type,
                expected_cash=self.compute_expected_cash(),
                allow_negative_cash=self.settings.allow_negative_cash,
            ).raise_for_issues()
        setattr(self, bucket, to_money(getattr(self, bucket) + value))
        return bucket

    def record_sale(self, allocations: Sequence[PaymentAllocation]) -> None:
        if not self.is_open:
            raise SessionNotOpenError()
        for allocation in allocations:
            if allocation.amount > 0:
                self.record_movement("sale", allocation.amount, method=allocation.method)
        self.sale_count += 1

    def record_cancellation(self, allocations: Sequence[PaymentAllocation]) -> None:
        for allocation in allocations:
            if allocation.amount > 0:
                self.record_movement("cancellation", allocation.amount, method=allocation.method)

    def close(
        self,
        notes: str = "",
        physical_count: MoneyLike | None = None,
        *,
        now: datetime | None = None,
    ) -> CashClosingResult:
        if not self.is_open:
            raise SessionNotOpenError()
        counted = to_money(physical_count) if physical_count is not None else None
        validate_close_session_payload(
            counted, require_count=self.settings.require_count_for_close
        ).raise_for_issues()
        expected = self.compute_expected_cash()
        closing_amount = counted if counted is not None else expected
        # Without a count the difference is the literal zero, not a rounded one.
        difference = to_money(closing_amount - expected) if counted is not None else ZERO
        self.closing_amount = closing_amount
        self.difference = difference
        self.closed_at = now or _now()
        self.is_open = False
        if notes:
            self.notes = f"{self.notes}\n{notes}".strip()
        return CashClosingResult(
            session_id=self.id,
            expected_cash=expected,
            closing_amount=closing_amount,
            difference=difference,
            manual_count=counted is not None,
            closed_at=self.closed_at,
        )

    def cash_level_alert(self) -> CashLevelAlert | None:
        expected = self.compute_expected_cash()
        if expected < self.settings.min_cash_amount:
            return "low"
        if expected > self.settings.max_cash_amount:
            return "high"
        return None

    def closing_summary(self) -> dict[str, Any]:
        return {
            "session_id": self.id,
            "opening_amount": self.opening_amount,
            "expected_cash": self.compute_expected_cash(),
            "total_income": self.total_income,
            "total_outcome": self.total_outcome,
            "net_earnings": self.net_earnings,
            "sale_count": self.sale_count,
            "breakdown": {
                "cash_sales": self.cash_sales,
                "credit_card_sales": self.credit_card_sales,
                "debit_card_sales": self.debit_card_sales,
                "transfer_sales": self.transfer_sales,
                "account_payments": self.account_payments,
                "deposits": self.deposits,
                "expenses": self.expenses,
                "withdrawals": self.withdrawals,
                "cash_cancellations": self.cash_cancellations,
                "other_cancellations": self.other_cancellations,
            },
        }


@dataclass
class CashRegister:
    backend: PosBackend
    status_ttl_seconds: float = 2.0
    clock: Callable[[], float] = time.monotonic
    session: CashSession | None = None
    settings: CashSettings = field(default_factory=CashSettings)
    movements: list[CashMovementResponse] = field(default_factory=list)
    last_closing: CashClosingResult | None = None
    _fetched_at: float | None = None

    @property
    def is_open(self) -> bool:
        return self.session is not None and self.session.is_open

    def refresh(self, *, force: bool = False) -> CashSession | None:
        """Read the session from the backend unless the last read is younger than the TTL."""
        if not force and self._fetched_at is not None:
            if self.clock() - self._fetched_at < self.status_ttl_seconds:
                return self.session
        status = self.backend.get_cash_session_status()
        if status.settings is not None:
            self.settings = status.settings
        self.session = CashSession.from_snapshot(status.session, self.settings) if status.session is not None else None
        self.movements = list(status.movements)
        self._fetched_at = self.clock()
        return self.session

    def invalidate(self) -> None:
        self._fetched_at = None

    def require_open(self) -> CashSession:
        session = self.refresh()
        if session is None or not session.is_open:
            raise CashSessionClosedError()
        return session

    def open(self, opening_amount: MoneyLike, notes: str = "") -> CashSession:
        amount = to_money(opening_amount)
        validate_open_session_payload(amount).raise_for_issues()
        if self.refresh(force=True) is not None and self.is_open:
            raise SessionAlreadyOpenError()
        keys = new_idempotency_keys()
        try:
            snapshot = self.backend.open_cash_session(amount, notes, idempotency_key=keys.idempotency_key)
        except Exception:
            log_action(logger, "cash_session", "open", "error", opening_amount=amount)
            raise
        session = self.refresh(force=True)
        if session is None or not session.is_open:
            if snapshot is not None:
                session = replace(CashSession.from_snapshot(snapshot, self.settings), is_open=True)
            else:
                session = CashSession.open(amount, notes, settings=self.settings)
            self.session = session
        log_action(logger, "cash_session", "open", "success", session_id=session.id, opening_amount=amount)
        return session

    def record_movement(
        self,
        movement_type: CashMovementType,
        amount: MoneyLike,
        description: str,
        *,
        reference: str | None = None,
    ) -> CashMovementResponse:
        session = self.refresh(force=True)
        if session is None or not session.is_open:
            raise SessionNotOpenError()
        value = to_money(amount)
        validate_movement_payload(
            movement_type,
            value,
            description,
            expected_cash=session.compute_expected_cash(),
            allow_negative_cash=self.settings.allow_negative_cash,
        ).raise_for_issues()
        request = CashMovementRequest(type=movement_type, amount=value, description=description, reference=reference)
        keys = new_idempotency_keys()
        try:
            response = self.backend.record_cash_movement(request, idempotency_key=keys.idempotency_key)
        except Exception:
            log_action(logger, "cash_session", "record_movement", "error", movement_type=movement_type, amount=value)
            raise
        self.refresh(force=True)
        log_action(
            logger,
            "cash_session",
            "record_movement",
            "success",
            session_id=session.id,
            movement_type=movement_type,
            amount=value,
        )
        return response

    def close(
        self,
        notes: str = "",
        physical_count: MoneyLike | None = None,
        *,
        count: DenominationCount | None = None,
    ) -> CashClosingResult:
        if count is not None:
            physical_count = count.total
        session = self.refresh(force=True)
        if session is None or not session.is_open:
            raise SessionNotOpenError()
        # Compute on a copy so a backend rejection leaves the cached session open.
        closing = replace(session)
        result = closing.close(notes, physical_count)
        keys = new_idempotency_keys()
        try:
            self.backend.close_cash_session(
                notes,
                result.closing_amount if result.manual_count else None,
                idempotency_key=keys.idempotency_key,
            )
        except Exception:
            log_action(logger, "cash_session", "close", "error", session_id=session.id)
            raise
        self.session = closing
        self.last_closing = result
        self.invalidate()
        log_action(
            logger,
            "cash_session",
            "close",
            "success",
            session_id=result.session_id,
            expected_cash=result.expected_cash,
            closing_amount=result.closing_amount,
            difference=result.difference,
        )
        return result
