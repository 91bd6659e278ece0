"""
Shared fixtures for the storefront test suite.
"""

from decimal import Decimal

import pytest

from storefront.config import Config
from storefront.database.order_store import MemoryOrderStore
from storefront.models.order import OrderItem, ShippingAddress
from storefront.models.payment import Capture, CaptureSource
from storefront.models.user import Identity
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService


@pytest.fixture(autouse=True)
def test_config(monkeypatch):
    monkeypatch.setattr(Config, "SECRET_KEY", "test-secret")
    monkeypatch.setattr(Config, "TOKEN_TTL", 3600)
    monkeypatch.setattr(Config, "STORE_TIMEOUT", 2.0)
    monkeypatch.setattr(Config, "PAYPAL_CLIENT_ID", "")
    monkeypatch.setattr(Config, "PAYPAL_CLIENT_SECRET", "")
    monkeypatch.setattr(Config, "ALLOW_MANUAL_CAPTURES", True)
    monkeypatch.setattr(Config, "TIMEZONE", "UTC")
    return Config


# ============================================================================
# Identities
# ============================================================================

@pytest.fixture
def owner():
    return Identity(user_id="user-1")


@pytest.fixture
def other_user():
    return Identity(user_id="user-2")


@pytest.fixture
def admin():
    return Identity(user_id="admin-1", is_admin=True)


# ============================================================================
# Orders
# ============================================================================

@pytest.fixture
def address():
    return ShippingAddress(address="1 Main St", city="Springfield", postal_code="12345", country="US")


@pytest.fixture
def items():
    return [OrderItem(product_ref="p1", name="Widget", quantity=2, unit_price=Decimal("10.00"))]


@pytest.fixture
def store():
    return MemoryOrderStore()


@pytest.fixture
def order_service(store):
    return OrderService(store)


@pytest.fixture
def payment_service(store):
    return PaymentService(store)


@pytest.fixture
def fulfillment_service(store):
    return FulfillmentService(store)


@pytest.fixture
def place(order_service, owner, items, address):
    """Place the reference order: 2 x 10.00, shipping 5.00, tax 2.00"""
    async def _place(order_items=None):
        return await order_service.place_order(
            owner_id=owner.user_id,
            items=order_items or items,
            shipping_address=address,
            payment_method="PayPal",
            shipping_price=Decimal("5.00"),
            tax_price=Decimal("2.00"),
        )
    return _place


def make_capture(amount="27.00", external_id="CAPTURE-1", status="COMPLETED", source=CaptureSource.MANUAL):
    return Capture(
        external_id=external_id,
        status=status,
        update_time="2026-10-19T10:00:00Z",
        payer_email="buyer@example.com",
        captured_amount=Decimal(amount),
        source=source,
    )
