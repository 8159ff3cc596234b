from __future__ import annotations

from decimal import Decimal
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_WALK_IN_DOCUMENT

EntityId = Union[int, str]
UnitType = Literal["unit", "weight"]
PriceTier = Literal["list", "cash"]

WALK_IN_CUSTOMER_ID = "walk-in"
WALK_IN_CUSTOMER_NAME = "Consumidor Final"


class Product(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: EntityId
    name: str
    price_list: Decimal
    price_cash: Decimal
    stock: Decimal = Decimal("0")
    unit_type: UnitType = "unit"
    barcode: str | None = None

    @property
    def is_discrete(self) -> bool:
        return self.unit_type == "unit"

    def price_for(self, tier: PriceTier) -> Decimal:
        return self.price_list if tier == "list" else self.price_cash


class Customer(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: EntityId
    name: str
    document_number: str | None = None
    current_balance: Decimal = Decimal("0.00")
    credit_limit: Decimal = Decimal("0.00")

    def is_walk_in(self, walk_in_document: str = DEFAULT_WALK_IN_DOCUMENT) -> bool:
        if self.id == WALK_IN_CUSTOMER_ID:
            return True
        return bool(self.document_number) and self.document_number == walk_in_document

    @property
    def available_credit(self) -> Decimal:
        return max(self.credit_limit - self.current_balance, Decimal("0.00"))


WALK_IN_CUSTOMER = Customer(
    id=WALK_IN_CUSTOMER_ID,
    name=WALK_IN_CUSTOMER_NAME,
    document_number=DEFAULT_WALK_IN_DOCUMENT,
)


class ProductStockResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    product_id: EntityId
    stock: Decimal = Field(default=Decimal("0"))
    unit_type: UnitType | None = None
