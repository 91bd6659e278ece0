"""
Tests for payment reconciliation: amount checks, idempotent replays,
second captures and racing notifications.
"""

import asyncio
from decimal import Decimal

import pytest

from storefront.exceptions import (
    AlreadyPaid, DuplicateCapture, Forbidden, GatewayUnavailable, InvalidCapture, OrderNotFound,
    PaymentAmountMismatch
)
from storefront.models.payment import CaptureSource
from storefront.services.payment_service import PaymentService
from tests.conftest import make_capture


class TestRecordPayment:

    @pytest.mark.asyncio
    async def test_marks_order_paid(self, place, payment_service, owner):
        order = await place()
        paid = await payment_service.record_payment(order.id, owner, make_capture("27.00"))

        assert paid.is_paid
        assert paid.paid_at is not None
        assert paid.payment_result.external_id == "CAPTURE-1"
        assert paid.payment_result.payer_email == "buyer@example.com"
        assert paid.total_price == order.total_price

    @pytest.mark.asyncio
    async def test_admin_can_record(self, place, payment_service, admin):
        order = await place()
        paid = await payment_service.record_payment(order.id, admin, make_capture())
        assert paid.is_paid

    @pytest.mark.asyncio
    async def test_one_cent_short(self, place, payment_service, store, owner):
        order = await place()
        with pytest.raises(PaymentAmountMismatch):
            await payment_service.record_payment(order.id, owner, make_capture("26.99"))
        assert not (await store.get(order.id)).is_paid

    @pytest.mark.asyncio
    async def test_overpayment_rejected(self, place, payment_service, owner):
        order = await place()
        with pytest.raises(PaymentAmountMismatch):
            await payment_service.record_payment(order.id, owner, make_capture("27.01"))

    @pytest.mark.asyncio
    async def test_amount_compared_at_cent_precision(self, place, payment_service, owner):
        order = await place()
        paid = await payment_service.record_payment(order.id, owner, make_capture("27"))
        assert paid.is_paid

    @pytest.mark.asyncio
    async def test_incomplete_capture(self, place, payment_service, store, owner):
        order = await place()
        with pytest.raises(InvalidCapture):
            await payment_service.record_payment(order.id, owner, make_capture(status="PENDING"))
        assert not (await store.get(order.id)).is_paid

    @pytest.mark.asyncio
    async def test_missing_order(self, payment_service, owner):
        with pytest.raises(OrderNotFound):
            await payment_service.record_payment("missing", owner, make_capture())

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, place, payment_service, store, other_user):
        order = await place()
        with pytest.raises(Forbidden):
            await payment_service.record_payment(order.id, other_user, make_capture())
        assert not (await store.get(order.id)).is_paid


class TestIdempotency:

    @pytest.mark.asyncio
    async def test_same_capture_twice(self, place, payment_service, owner):
        order = await place()
        first = await payment_service.record_payment(order.id, owner, make_capture())
        second = await payment_service.record_payment(order.id, owner, make_capture())

        assert second.is_paid
        assert second.paid_at == first.paid_at
        assert second == first

    @pytest.mark.asyncio
    async def test_different_capture_rejected(self, place, payment_service, store, owner):
        order = await place()
        first = await payment_service.record_payment(order.id, owner, make_capture())

        with pytest.raises(AlreadyPaid):
            await payment_service.record_payment(order.id, owner, make_capture(external_id="CAPTURE-2"))
        assert await store.get(order.id) == first

    @pytest.mark.asyncio
    async def test_mismatched_second_capture(self, place, payment_service, owner):
        order = await place()
        await payment_service.record_payment(order.id, owner, make_capture())
        with pytest.raises(PaymentAmountMismatch):
            await payment_service.record_payment(order.id, owner, make_capture("1.00", external_id="CAPTURE-2"))

    @pytest.mark.asyncio
    async def test_racing_notifications(self, place, payment_service, store, owner, admin):
        order = await place()
        writes = []
        original = store._conditional_update

        async def counting(order_id, predicate, mutation):
            def tracked(current):
                writes.append(current.id)
                return mutation(current)
            return await original(order_id, predicate, tracked)

        store._conditional_update = counting

        results = await asyncio.gather(
            payment_service.record_payment(order.id, owner, make_capture()),
            payment_service.record_payment(order.id, admin, make_capture()),
            payment_service.record_payment(order.id, owner, make_capture()),
        )

        assert len(writes) == 1
        assert all(r.is_paid for r in results)
        assert len({r.paid_at for r in results}) == 1


class TestCaptureTrust:

    @pytest.mark.asyncio
    async def test_paypal_capture_needs_gateway(self, place, payment_service, store, owner):
        order = await place()
        forged = make_capture("27.00", external_id="FORGED", source=CaptureSource.PAYPAL)
        with pytest.raises(InvalidCapture) as exc:
            await payment_service.record_payment(order.id, owner, forged)
        assert exc.value.field == "source"
        assert not (await store.get(order.id)).is_paid

    @pytest.mark.asyncio
    async def test_manual_captures_disabled(self, place, payment_service, store, owner, test_config, monkeypatch):
        monkeypatch.setattr(test_config, "ALLOW_MANUAL_CAPTURES", False)
        order = await place()
        with pytest.raises(InvalidCapture):
            await payment_service.record_payment(order.id, owner, make_capture())
        assert not (await store.get(order.id)).is_paid

    @pytest.mark.asyncio
    async def test_sub_cent_capture_not_rounded_up(self, place, payment_service, store, owner):
        order = await place()
        with pytest.raises(InvalidCapture):
            await payment_service.record_payment(order.id, owner, make_capture("26.995"))
        assert not (await store.get(order.id)).is_paid


class TestCaptureReuse:

    @pytest.mark.asyncio
    async def test_capture_pays_one_order(self, place, payment_service, store, owner):
        first = await place()
        second = await place()
        await payment_service.record_payment(first.id, owner, make_capture(external_id="CAP-X"))

        with pytest.raises(DuplicateCapture):
            await payment_service.record_payment(second.id, owner, make_capture(external_id="CAP-X"))
        assert not (await store.get(second.id)).is_paid

    @pytest.mark.asyncio
    async def test_replay_on_owning_order_still_succeeds(self, place, payment_service, owner):
        first = await place()
        await place()
        paid = await payment_service.record_payment(first.id, owner, make_capture(external_id="CAP-X"))
        again = await payment_service.record_payment(first.id, owner, make_capture(external_id="CAP-X"))
        assert again == paid

    @pytest.mark.asyncio
    async def test_racing_orders_share_capture(self, place, payment_service, store, owner):
        orders = [await place(), await place()]
        results = await asyncio.gather(
            *(payment_service.record_payment(o.id, owner, make_capture(external_id="CAP-X")) for o in orders),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, DuplicateCapture)) == 1
        stored = [await store.get(o.id) for o in orders]
        assert sum(1 for o in stored if o.is_paid) == 1


class TestGatewayVerification:

    class FakeVerifier:
        def __init__(self, result=None, error=None):
            self.result = result
            self.error = error
            self.calls = []

        async def verify(self, capture, order_id):
            self.calls.append((capture.external_id, order_id))
            if self.error:
                raise self.error
            return self.result

    @pytest.mark.asyncio
    async def test_gateway_amount_overrides_client(self, place, store, owner):
        order = await place()
        verifier = self.FakeVerifier(result=make_capture("20.00", source=CaptureSource.PAYPAL))
        service = PaymentService(store, verifier)

        # client claims the full total, the gateway recorded less
        with pytest.raises(PaymentAmountMismatch):
            await service.record_payment(order.id, owner, make_capture("27.00", source=CaptureSource.PAYPAL))
        assert verifier.calls == [("CAPTURE-1", order.id)]

    @pytest.mark.asyncio
    async def test_gateway_confirms(self, place, store, owner):
        order = await place()
        verified = make_capture("27.00", source=CaptureSource.PAYPAL)
        service = PaymentService(store, self.FakeVerifier(result=verified))
        paid = await service.record_payment(order.id, owner, make_capture("27.00", source=CaptureSource.PAYPAL))
        assert paid.is_paid

    @pytest.mark.asyncio
    async def test_gateway_down(self, place, store, owner):
        order = await place()
        service = PaymentService(store, self.FakeVerifier(error=GatewayUnavailable()))
        with pytest.raises(GatewayUnavailable) as exc:
            await service.record_payment(order.id, owner, make_capture(source=CaptureSource.PAYPAL))
        assert exc.value.retryable
        assert not (await store.get(order.id)).is_paid


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_reference_scenario(self, order_service, payment_service, owner, items, address):
        order = await order_service.place_order(
            owner.user_id, items, address, "PayPal", Decimal("5.00"), Decimal("2.00")
        )
        assert order.items_price == Decimal("20.00")
        assert order.total_price == Decimal("27.00")

        with pytest.raises(PaymentAmountMismatch):
            await payment_service.record_payment(order.id, owner, make_capture("26.99"))

        paid = await payment_service.record_payment(order.id, owner, make_capture("27.00"))
        assert paid.is_paid
