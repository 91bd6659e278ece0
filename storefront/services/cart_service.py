# storefront/services/cart_service.py
from decimal import Decimal
from typing import Any, List, NamedTuple, Sequence, Tuple
from pydantic import ValidationError as PydanticValidationError
from ..config import Config
from ..exceptions import EmptyCart, InvalidLineItem, InvalidAmount
from ..models.order import OrderItem
from ..utils.money import Money, round2

# client line item keys -> OrderItem fields
ITEM_FIELDS = {
    "product": "product_ref",
    "name": "name",
    "qty": "quantity",
    "price": "unit_price",
    "image": "image",
}
_FIELD_NAMES = {v: k for k, v in ITEM_FIELDS.items()}


class Totals(NamedTuple):
    items_price: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total_price: Decimal


def build_line_items(raw_items: Any) -> List[OrderItem]:
    """Validate client-submitted line items"""
    if not isinstance(raw_items, list):
        raise InvalidLineItem("orderItems must be a list", field="orderItems")
    if not raw_items:
        raise EmptyCart()

    items = []
    for index, raw in enumerate(raw_items):
        prefix = f"orderItems[{index}]"
        if not isinstance(raw, dict):
            raise InvalidLineItem("Line item must be an object", field=prefix)

        data = {field: raw.get(key) for key, field in ITEM_FIELDS.items() if key in raw}
        if isinstance(data.get("quantity"), bool):
            raise InvalidLineItem("Quantity must be a positive integer", field=f"{prefix}.qty")
        if "unit_price" in data:
            try:
                data["unit_price"] = round2(data["unit_price"])
            except InvalidAmount:
                raise InvalidLineItem("Price must be a non-negative amount", field=f"{prefix}.price")

        try:
            items.append(OrderItem.model_validate(data))
        except PydanticValidationError as e:
            first = e.errors()[0]
            loc = first.get("loc") or ("",)
            field = _FIELD_NAMES.get(loc[0], loc[0])
            raise InvalidLineItem(first.get("msg", "Invalid line item"), field=f"{prefix}.{field}")
    return items


def compute_totals(items: Sequence[OrderItem], shipping_price: Decimal, tax_price: Decimal) -> Totals:
    """Authoritative price totals for a list of line items"""
    if not items:
        raise EmptyCart()

    exact = Decimal(0)
    for index, item in enumerate(items):
        if item.quantity <= 0:
            raise InvalidLineItem("Quantity must be greater than 0", field=f"orderItems[{index}].qty")
        if item.unit_price < 0:
            raise InvalidLineItem("Price must not be negative", field=f"orderItems[{index}].price")
        exact += item.unit_price * item.quantity

    items_money = Money.from_value(exact, field="itemsPrice")
    shipping_money = Money.from_value(shipping_price, field="shippingPrice")
    tax_money = Money.from_value(tax_price, field="taxPrice")
    total_money = items_money + shipping_money + tax_money

    return Totals(
        items_price=items_money.to_decimal(),
        shipping_price=shipping_money.to_decimal(),
        tax_price=tax_money.to_decimal(),
        total_price=total_money.to_decimal(),
    )


class PricingPolicy:
    """Flat-rate shipping and tax"""

    def __init__(self, free_shipping_threshold: Decimal = None,
                 shipping_flat_rate: Decimal = None, tax_rate: Decimal = None):
        self.free_shipping_threshold = Decimal(
            free_shipping_threshold if free_shipping_threshold is not None
            else Config.FREE_SHIPPING_THRESHOLD
        )
        self.shipping_flat_rate = round2(
            shipping_flat_rate if shipping_flat_rate is not None else Config.SHIPPING_FLAT_RATE
        )
        self.tax_rate = Decimal(tax_rate if tax_rate is not None else Config.TAX_RATE)
        if self.tax_rate < 0:
            raise InvalidAmount("Tax rate must not be negative", field="taxRate")

    def items_price(self, items: Sequence[OrderItem]) -> Decimal:
        if not items:
            raise EmptyCart()
        return round2(sum((item.total_price for item in items), Decimal(0)))

    def quote(self, items: Sequence[OrderItem]) -> Tuple[Decimal, Decimal]:
        """Shipping and tax for a cart"""
        items_price = self.items_price(items)
        shipping = Decimal("0.00") if items_price > self.free_shipping_threshold else self.shipping_flat_rate
        tax = round2(items_price * self.tax_rate)
        return shipping, tax
