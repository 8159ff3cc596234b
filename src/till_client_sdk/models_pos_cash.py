from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .models_catalog import EntityId

CashMovementType = Literal["deposit", "withdrawal", "expense", "sale", "cancellation"]
MANUAL_MOVEMENT_TYPES: tuple[str, ...] = ("deposit", "withdrawal", "expense")
CashLevelAlert = Literal["low", "high"]


class CashSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    min_cash_amount: Decimal = Decimal("2000.00")
    max_cash_amount: Decimal = Decimal("20000.00")
    auto_close_time: str = "22:00"
    require_count_for_close: bool = False
    allow_negative_cash: bool = False


class CashSessionSnapshot(BaseModel):
    """Cash session as reported by the backend."""

    model_config = ConfigDict(extra="allow")

    id: EntityId | None = None
    status: Literal["open", "closed"] = "closed"
    opening_amount: Decimal = Decimal("0.00")
    opening_date: datetime | None = None
    opened_by: str | None = None
    notes: str | None = None
    cash_sales: Decimal = Decimal("0.00")
    credit_card_sales: Decimal = Decimal("0.00")
    debit_card_sales: Decimal = Decimal("0.00")
    transfer_sales: Decimal = Decimal("0.00")
    account_payments: Decimal = Decimal("0.00")
    deposits: Decimal = Decimal("0.00")
    expenses: Decimal = Decimal("0.00")
    withdrawals: Decimal = Decimal("0.00")
    cash_cancellations: Decimal = Decimal("0.00")
    other_cancellations: Decimal = Decimal("0.00")
    sale_count: int = 0
    closing_amount: Decimal | None = None
    difference: Decimal | None = None
    closed_at: datetime | None = None


class CashMovementRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: CashMovementType
    amount: Decimal
    description: str
    reference: str | None = None
    method: str | None = None


class CashMovementResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: EntityId | None = None
    type: str | None = None
    amount: Decimal | None = None
    description: str | None = None
    reference: str | None = None
    session_id: EntityId | None = None
    created_at: datetime | None = None


class CashStatusResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    session: CashSessionSnapshot | None = None
    movements: list[CashMovementResponse] = Field(default_factory=list)
    settings: CashSettings | None = None


class CashMovementListResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    movements: list[CashMovementResponse] = Field(default_factory=list)


class CashHistoryPagination(BaseModel):
    model_config = ConfigDict(extra="allow")

    page: int = 1
    limit: int = 20
    total: int = 0
    pages: int = 0


class CashSessionListResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    sessions: list[CashSessionSnapshot] = Field(
        default_factory=list,
        validation_alias=AliasChoices("history", "sessions"),
    )
    pagination: CashHistoryPagination = Field(default_factory=CashHistoryPagination)


class CashOpenRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    opening_amount: Decimal
    notes: str = ""


class CashCloseRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    closing_notes: str = ""
    closing_amount: Decimal | None = None
    compare_with_physical: bool = False


class DenominationCount(BaseModel):
    """Physical drawer count: ``{denomination: pieces}`` for bills and coins."""

    model_config = ConfigDict(extra="forbid")

    bills: dict[Decimal, int] = Field(default_factory=dict)
    coins: dict[Decimal, int] = Field(default_factory=dict)

    @property
    def total(self) -> Decimal:
        pieces = list(self.bills.items()) + list(self.coins.items())
        total = sum((denomination * max(count, 0) for denomination, count in pieces), Decimal("0"))
        return total.quantize(Decimal("0.01"))


class CashClosingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: EntityId | None
    expected_cash: Decimal
    closing_amount: Decimal
    difference: Decimal
    manual_count: bool
    closed_at: datetime

    @property
    def balanced(self) -> bool:
        return self.difference == 0
