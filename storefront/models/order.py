# storefront/models/order.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from .base import TimeStampedModel
from ..utils.money import round2

# Fields a stored order may change after creation, each exactly once
MUTABLE_FIELDS = ("is_paid", "paid_at", "payment_result", "is_delivered", "delivered_at")


class OrderItem(BaseModel):
    """Individual line item in an order"""
    product_ref: str = Field(min_length=1)
    name: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    image: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_json(self) -> Dict[str, Any]:
        return {
            "product": self.product_ref,
            "name": self.name,
            "qty": self.quantity,
            "price": str(self.unit_price),
            "image": self.image,
        }


class ShippingAddress(BaseModel):
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    postal_code: str = Field(min_length=1)
    country: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    def to_json(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "city": self.city,
            "postalCode": self.postal_code,
            "country": self.country,
        }


class PaymentResult(BaseModel):
    """Capture recorded on a paid order"""
    external_id: str
    status: str
    update_time: Optional[str] = None
    payer_email: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.external_id,
            "status": self.status,
            "update_time": self.update_time,
            "email_address": self.payer_email,
        }


class Order(TimeStampedModel):
    """Order model for purchases"""
    id: Optional[str] = None
    owner_id: str
    items: List[OrderItem]
    shipping_address: ShippingAddress
    payment_method: str
    items_price: Decimal
    shipping_price: Decimal
    tax_price: Decimal
    total_price: Decimal
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_invariants(self) -> "Order":
        if not self.items:
            raise ValueError("order has no items")
        for name in ("items_price", "shipping_price", "tax_price", "total_price"):
            value = getattr(self, name)
            if value < 0 or value != round2(value):
                raise ValueError(f"{name} must be a non-negative amount with 2 decimals")
        if self.items_price != round2(sum(item.total_price for item in self.items)):
            raise ValueError("items_price does not match line items")
        if self.total_price != round2(self.items_price + self.shipping_price + self.tax_price):
            raise ValueError("total_price does not match its components")
        if self.is_paid != (self.paid_at is not None) or self.is_paid != (self.payment_result is not None):
            raise ValueError("paid_at and payment_result must be set exactly when paid")
        if self.is_delivered != (self.delivered_at is not None):
            raise ValueError("delivered_at must be set exactly when delivered")
        if self.is_delivered and not self.is_paid:
            raise ValueError("an unpaid order cannot be delivered")
        return self

    def with_changes(self, **changes: Any) -> "Order":
        """Copy with lifecycle fields changed, re-checking invariants"""
        unknown = set(changes) - set(MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"immutable order fields: {sorted(unknown)}")
        data = dict(self)
        data.update(changes)
        return Order.model_validate(data)

    def to_json(self) -> Dict[str, Any]:
        """Client representation"""
        return {
            "_id": self.id,
            "user": self.owner_id,
            "orderItems": [item.to_json() for item in self.items],
            "shippingAddress": self.shipping_address.to_json(),
            "paymentMethod": self.payment_method,
            "itemsPrice": str(self.items_price),
            "shippingPrice": str(self.shipping_price),
            "taxPrice": str(self.tax_price),
            "totalPrice": str(self.total_price),
            "isPaid": self.is_paid,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "paymentResult": self.payment_result.to_json() if self.payment_result else None,
            "isDelivered": self.is_delivered,
            "deliveredAt": self.delivered_at.isoformat() if self.delivered_at else None,
            "createdAt": self.created_at.isoformat(),
        }
