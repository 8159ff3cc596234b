from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .models_catalog import EntityId

StockMovementType = Literal["entry", "exit", "adjustment"]


class StockMovementRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    product_id: EntityId
    type: StockMovementType
    quantity: Union[int, Decimal]
    reason: str
    previous_stock: Union[int, Decimal]
    new_stock: Union[int, Decimal]


class StockMovement(BaseModel):
    """One immutable ledger row.

    ``quantity`` is the amount moved for entries and exits and the signed
    delta for adjustments.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    id: EntityId | None = None
    product_id: EntityId
    type: StockMovementType
    quantity: Union[int, Decimal]
    previous_stock: Union[int, Decimal]
    new_stock: Union[int, Decimal]
    reason: str
    timestamp: datetime | None = None
    user_id: EntityId | None = None


class StockMovementListResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    movements: list[StockMovement] = Field(default_factory=list)


class StockMovementQuery(BaseModel):
    model_config = ConfigDict(extra="allow")

    product_id: EntityId | None = None
    type: StockMovementType | None = None
    page: int | None = None
    limit: int | None = None


StockAlertLevel = Literal["low", "critical"]


def stock_alert_level(stock: Union[int, Decimal], min_stock: Union[int, Decimal]) -> StockAlertLevel | None:
    if stock <= 0:
        return "critical"
    if stock <= min_stock:
        return "low"
    return None


class StockAlert(BaseModel):
    """A product at or below its minimum stock."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: EntityId
    name: str = ""
    stock: Union[int, Decimal] = 0
    min_stock: Union[int, Decimal] = 0
    level: StockAlertLevel | None = None

    @property
    def alert_level(self) -> StockAlertLevel | None:
        # Older backends omit the level and leave the threshold comparison to the client.
        return self.level or stock_alert_level(self.stock, self.min_stock)


class StockAlertListResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    alerts: list[StockAlert] = Field(default_factory=list)

    @property
    def critical(self) -> list[StockAlert]:
        return [alert for alert in self.alerts if alert.alert_level == "critical"]


class MonthlyStockMovement(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: StockMovementType
    total_quantity: Union[int, Decimal] = 0


class StockStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    general: dict[str, Any] = Field(default_factory=dict)
    monthly_movements: list[MonthlyStockMovement] = Field(default_factory=list)
    low_stock_products: list[StockAlert] = Field(default_factory=list)

    def monthly_total(self, movement_type: StockMovementType) -> Union[int, Decimal]:
        return sum((row.total_quantity for row in self.monthly_movements if row.type == movement_type), 0)
