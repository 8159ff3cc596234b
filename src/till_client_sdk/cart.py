from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, Literal

from .exceptions import ClientValidationError, InsufficientStockError, InvalidQuantityError, ValidationIssue
from .models_catalog import EntityId, PriceTier, Product
from .models_pos_sales import LineItem
from .money import ZERO, MoneyLike, clamp, money_sum, parse_finite, to_decimal, to_money, to_quantity

DiscountKind = Literal["amount", "percentage"]
CartListener = Callable[["Cart"], None]

_HUNDRED = Decimal("100")


def _key(product_id: EntityId, price_tier: str) -> tuple[str, str]:
    return (str(product_id), price_tier)


@dataclass(frozen=True)
class CartStats:
    items_count: int
    total_units: Decimal
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


@dataclass
class Cart:
    """In-progress sale.

    Totals are recomputed from the line items on every read. The discount is
    stored as the value the cashier entered and resolved against the current
    subtotal, so ``0 <= discount <= subtotal`` holds after any mutation.
    """

    _items: dict[tuple[str, str], LineItem] = field(default_factory=dict)
    _products: dict[str, Product] = field(default_factory=dict)
    discount_kind: DiscountKind = "amount"
    discount_value: Decimal = ZERO
    tax_amount: Decimal = ZERO
    revision: int = 0
    listeners: list[CartListener] = field(default_factory=list)

    @property
    def items(self) -> list[LineItem]:
        return list(self._items.values())

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def subtotal(self) -> Decimal:
        return money_sum(item.line_total for item in self._items.values())

    @property
    def discount(self) -> Decimal:
        subtotal = self.subtotal
        if self.discount_kind == "percentage":
            raw = subtotal * self.discount_value / _HUNDRED
        else:
            raw = self.discount_value
        return to_money(clamp(raw, ZERO, subtotal))

    @property
    def final_total(self) -> Decimal:
        return to_money(self.subtotal - self.discount + self.tax_amount)

    def get_item(self, product_id: EntityId, price_tier: PriceTier) -> LineItem | None:
        return self._items.get(_key(product_id, price_tier))

    def quantity_of(self, product_id: EntityId, *, excluding_tier: str | None = None) -> Decimal:
        """Quantity of a product across price tiers."""
        return sum(
            (
                Decimal(str(item.quantity))
                for (pid, tier), item in self._items.items()
                if pid == str(product_id) and tier != excluding_tier
            ),
            Decimal("0"),
        )

    def add_or_replace_item(
        self,
        product: Product,
        quantity: MoneyLike,
        price_tier: PriceTier = "cash",
        *,
        available_stock: MoneyLike | None = None,
    ) -> LineItem:
        normalized = to_quantity(quantity, discrete=product.is_discrete)
        stock = to_decimal(product.stock if available_stock is None else available_stock)
        requested = Decimal(str(normalized)) + self.quantity_of(product.id, excluding_tier=price_tier)
        if requested > stock:
            raise InsufficientStockError(str(product.id), available=stock, requested=requested)
        item = LineItem(
            product_id=product.id,
            name=product.name,
            quantity=normalized,
            unit_price=to_money(product.price_for(price_tier)),
            price_tier=price_tier,
            unit_type=product.unit_type,
        )
        self._items[item.key] = item
        self._products[str(product.id)] = product
        self._changed()
        return item

    def remove_item(self, product_id: EntityId, price_tier: PriceTier) -> None:
        if self._items.pop(_key(product_id, price_tier), None) is None:
            return
        if not self.quantity_of(product_id):
            self._products.pop(str(product_id), None)
        self._changed()

    def update_quantity(
        self,
        product_id: EntityId,
        price_tier: PriceTier,
        new_quantity: MoneyLike,
        *,
        available_stock: MoneyLike | None = None,
    ) -> LineItem | None:
        requested = parse_finite(new_quantity, field="quantity", error=InvalidQuantityError)
        if requested <= 0:
            self.remove_item(product_id, price_tier)
            return None
        if self.get_item(product_id, price_tier) is None:
            return None
        product = self._products[str(product_id)]
        return self.add_or_replace_item(product, new_quantity, price_tier, available_stock=available_stock)

    def apply_discount(self, value: MoneyLike, kind: DiscountKind = "amount") -> Decimal:
        if kind not in ("amount", "percentage"):
            raise ClientValidationError([ValidationIssue(field="kind", reason="must be amount or percentage")])
        amount = parse_finite(value, field="discount")
        if amount < 0:
            raise ClientValidationError([ValidationIssue(field="discount", reason="must not be negative")])
        if kind == "percentage":
            amount = min(amount, _HUNDRED)
        self.discount_kind = kind
        self.discount_value = amount
        self._changed()
        return self.discount

    def set_tax(self, amount: MoneyLike) -> None:
        value = parse_finite(amount, field="tax")
        if value < 0:
            raise ClientValidationError([ValidationIssue(field="tax", reason="must not be negative")])
        try:
            tax = to_money(value)
        except InvalidOperation as exc:
            raise ClientValidationError([ValidationIssue(field="tax", reason="is out of range")]) from exc
        self.tax_amount = tax
        self._changed()

    def clear(self) -> None:
        self._items.clear()
        self._products.clear()
        self.discount_kind = "amount"
        self.discount_value = ZERO
        self.tax_amount = ZERO
        self._changed()

    def product(self, product_id: EntityId) -> Product | None:
        return self._products.get(str(product_id))

    def stats(self) -> CartStats:
        return CartStats(
            items_count=len(self._items),
            total_units=sum((Decimal(str(item.quantity)) for item in self._items.values()), Decimal("0")),
            subtotal=self.subtotal,
            discount=self.discount,
            tax=self.tax_amount,
            total=self.final_total,
        )

    def subscribe(self, listener: CartListener) -> None:
        self.listeners.append(listener)

    def _changed(self) -> None:
        self.revision += 1
        for listener in list(self.listeners):
            listener(self)
