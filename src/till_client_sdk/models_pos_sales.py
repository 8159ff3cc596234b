from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field

from .models_catalog import EntityId, PriceTier, UnitType
from .money import to_money

PaymentMethod = Literal["cash", "debit", "credit", "transfer", "account"]
PAYMENT_METHODS: tuple[str, ...] = ("cash", "debit", "credit", "transfer", "account")
SaleStatus = Literal["completed", "pending", "cancelled"]


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: EntityId
    name: str | None = None
    quantity: Union[int, Decimal]
    unit_price: Decimal
    price_tier: PriceTier = "cash"
    unit_type: UnitType = "unit"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def line_total(self) -> Decimal:
        return to_money(Decimal(str(self.quantity)) * self.unit_price)

    @property
    def key(self) -> tuple[str, str]:
        return (str(self.product_id), self.price_tier)


class _AllocationBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    amount: Decimal


class CashAllocation(_AllocationBase):
    method: Literal["cash"] = "cash"


class DebitAllocation(_AllocationBase):
    method: Literal["debit"] = "debit"
    card_last4: str | None = None


class CreditAllocation(_AllocationBase):
    method: Literal["credit"] = "credit"
    card_last4: str | None = None
    installments: int = 1
    interest_rate: Decimal = Decimal("0")


class TransferAllocation(_AllocationBase):
    method: Literal["transfer"] = "transfer"
    reference: str | None = None


class AccountAllocation(_AllocationBase):
    method: Literal["account"] = "account"
    customer_id: EntityId | None = None


PaymentAllocation = Annotated[
    Union[CashAllocation, DebitAllocation, CreditAllocation, TransferAllocation, AccountAllocation],
    Field(discriminator="method"),
]

_ALLOCATION_ADAPTER: TypeAdapter[Any] = TypeAdapter(PaymentAllocation)


def allocation_from(method: str, amount: Decimal, **metadata: Any) -> PaymentAllocation:
    return _ALLOCATION_ADAPTER.validate_python({"method": method, "amount": amount, **metadata})


class SaleLinePayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    product_id: EntityId
    quantity: Union[int, Decimal]
    unit_price: Decimal
    total_price: Decimal
    price_type: PriceTier


class SaleRecord(BaseModel):
    """Immutable sale submitted to the backend on commit."""

    model_config = ConfigDict(frozen=True)

    idempotency_key: str
    items: tuple[SaleLinePayload, ...]
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    customer_id: EntityId | None = None
    payment_method: Literal["cash", "debit", "credit", "transfer", "account", "multiple"]
    payment_allocations: tuple[PaymentAllocation, ...]
    amount_received: Decimal | None = None
    change: Decimal = Decimal("0.00")
    timestamp: datetime
    notes: str | None = None


class SaleResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: EntityId
    status: str = "completed"
    total: Decimal | None = None
    subtotal: Decimal | None = None
    discount: Decimal | None = None
    tax: Decimal | None = None
    customer_id: EntityId | None = None
    payment_method: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)


class SaleCancelRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    reason: str


class SaleCancelResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = True
    message: str | None = None


class SalesPagination(BaseModel):
    model_config = ConfigDict(extra="allow")

    page: int = 1
    limit: int = 25
    total: int = 0
    pages: int = 0


class SaleListResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    sales: list[SaleResponse] = Field(default_factory=list)
    pagination: SalesPagination = Field(default_factory=SalesPagination)


class SaleQuery(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    page: int | None = None
    limit: int | None = None
    status: SaleStatus | None = None
    payment_method: str | None = None
    customer_id: EntityId | None = None
    from_date: datetime | str | None = Field(default=None, alias="start_date")
    to_date: datetime | str | None = Field(default=None, alias="end_date")
