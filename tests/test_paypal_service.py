"""
Tests for server-side capture verification against PayPal.
"""

from decimal import Decimal

import pytest

from storefront.exceptions import GatewayUnavailable, InvalidCapture
from storefront.models.payment import CaptureSource
from storefront.services.paypal_service import PayPalCaptureVerifier, build_capture_verifier
from tests.conftest import make_capture

ORDER_ID = "64f1c2a9e3b7d4a1c2e3f4a5"


class FakePayPalClient:
    def __init__(self, result):
        self.result = result
        self.requested = []

    async def get_order(self, paypal_order_id):
        self.requested.append(paypal_order_id)
        return self.result


def paypal_order(reference_id=ORDER_ID):
    return {
        "id": "CAPTURE-1",
        "status": "COMPLETED",
        "update_time": "2026-10-19T10:00:05Z",
        "payer": {"email_address": "real-buyer@example.com"},
        "purchase_units": [{
            "reference_id": reference_id,
            "amount": {"currency_code": "USD", "value": "27.00"},
            "payments": {"captures": [
                {"id": "3C679366HH908993F", "status": "COMPLETED", "amount": {"value": "20.00"}},
            ]},
        }],
    }


def paypal_capture(amount="27.00"):
    return make_capture(amount, source=CaptureSource.PAYPAL)


@pytest.mark.asyncio
async def test_server_record_replaces_client_claims():
    client = FakePayPalClient({"success": True, "order": paypal_order()})
    verified = await PayPalCaptureVerifier(client).verify(paypal_capture("27.00"), ORDER_ID)

    assert client.requested == ["CAPTURE-1"]
    assert verified.captured_amount == Decimal("20.00")
    assert verified.payer_email == "real-buyer@example.com"
    assert verified.update_time == "2026-10-19T10:00:05Z"


@pytest.mark.asyncio
async def test_paypal_order_for_another_order():
    client = FakePayPalClient({"success": True, "order": paypal_order(reference_id="someone-elses-order")})
    with pytest.raises(InvalidCapture) as exc:
        await PayPalCaptureVerifier(client).verify(paypal_capture(), ORDER_ID)
    assert exc.value.field == "purchase_units.reference_id"


@pytest.mark.asyncio
async def test_paypal_order_without_reference():
    client = FakePayPalClient({"success": True, "order": paypal_order(reference_id=None)})
    with pytest.raises(InvalidCapture):
        await PayPalCaptureVerifier(client).verify(paypal_capture(), ORDER_ID)


@pytest.mark.asyncio
async def test_sub_cent_gateway_amount():
    order = paypal_order()
    order["purchase_units"][0]["payments"]["captures"][0]["amount"]["value"] = "26.995"
    client = FakePayPalClient({"success": True, "order": order})
    with pytest.raises(InvalidCapture):
        await PayPalCaptureVerifier(client).verify(paypal_capture(), ORDER_ID)


@pytest.mark.asyncio
async def test_unknown_paypal_order():
    client = FakePayPalClient({"success": False, "error": "PayPal order not found", "retryable": False})
    with pytest.raises(InvalidCapture):
        await PayPalCaptureVerifier(client).verify(paypal_capture(), ORDER_ID)


@pytest.mark.asyncio
async def test_gateway_outage_is_retryable():
    client = FakePayPalClient({"success": False, "error": "Error contacting PayPal", "retryable": True})
    with pytest.raises(GatewayUnavailable):
        await PayPalCaptureVerifier(client).verify(paypal_capture(), ORDER_ID)


@pytest.mark.asyncio
async def test_unexpected_shape():
    client = FakePayPalClient({"success": True, "order": {"id": "CAPTURE-1"}})
    with pytest.raises(InvalidCapture):
        await PayPalCaptureVerifier(client).verify(paypal_capture(), ORDER_ID)


@pytest.mark.asyncio
async def test_manual_capture_not_sent_to_paypal():
    client = FakePayPalClient({"success": False, "error": "unused"})
    manual = make_capture("27.00", external_id="TEST-1")
    assert await PayPalCaptureVerifier(client).verify(manual, ORDER_ID) == manual
    assert client.requested == []


def test_verifier_needs_credentials(test_config, monkeypatch):
    assert build_capture_verifier() is None
    monkeypatch.setattr(test_config, "PAYPAL_CLIENT_ID", "id")
    monkeypatch.setattr(test_config, "PAYPAL_CLIENT_SECRET", "secret")
    assert isinstance(build_capture_verifier(), PayPalCaptureVerifier)
