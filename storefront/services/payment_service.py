# storefront/services/payment_service.py
import logging
from typing import Optional
from ..config import Config
from ..database.order_store import OrderStore
from ..exceptions import (
    AlreadyPaid, DuplicateCapture, Forbidden, InvalidCapture, PaymentAmountMismatch,
    PredicateFailed
)
from ..models.order import Order
from ..models.payment import Capture, CaptureSource
from ..models.user import Identity
from ..utils.formatters import format_datetime, format_price, now
from ..utils.money import Money
from .access import Action, can_access
from .paypal_service import PayPalCaptureVerifier

class PaymentService:
    """Reconciles gateway captures with stored orders.

    Capture notifications can arrive more than once: the client retries after a
    timeout, the user double-clicks, a gateway callback races the client call.
    Recording the same capture again returns the paid order unchanged; a
    different capture for a paid order is rejected with ``AlreadyPaid``.

    A capture pays an order only when the gateway vouched for it, or when it is
    a manual capture and ``Config.ALLOW_MANUAL_CAPTURES`` is on. A capture id
    pays at most one order.
    """

    def __init__(self, store: OrderStore, verifier: Optional[PayPalCaptureVerifier] = None):
        self.store = store
        self.verifier = verifier
        self.logger = logging.getLogger(__name__)

    async def record_payment(self, order_id: str, identity: Identity, capture: Capture) -> Order:
        """Mark an order paid once its capture checks out"""
        order = await self.store.get(order_id)
        if not can_access(identity, order, Action.PAY):
            raise Forbidden()

        capture = await self._attested(capture, order_id)

        if not capture.is_completed:
            self.logger.warning(
                f"Rejected capture {capture.external_id} for order {order_id}: status {capture.status}"
            )
            raise InvalidCapture(f"Capture status is {capture.status}, not COMPLETED", field="status")

        self._check_amount(order, capture)

        paid_at = now()
        payment_result = capture.to_payment_result()

        try:
            paid = await self.store.conditional_update(
                order_id,
                lambda current: not current.is_paid,
                lambda current: current.with_changes(
                    is_paid=True, paid_at=paid_at, payment_result=payment_result
                ),
            )
        except PredicateFailed as e:
            return self._already_paid(e.current, capture)
        except DuplicateCapture:
            self.logger.warning(
                f"Rejected capture {capture.external_id} for order {order_id}: already used by another order"
            )
            raise

        self.logger.info(
            f"Order {order_id} paid: capture {capture.external_id} "
            f"for {format_price(paid.total_price)} at {format_datetime(paid_at)}"
        )
        return paid

    async def _attested(self, capture: Capture, order_id: str) -> Capture:
        """The capture as its issuer vouches for it"""
        if capture.source == CaptureSource.MANUAL:
            if not Config.ALLOW_MANUAL_CAPTURES:
                raise InvalidCapture("Manual captures are disabled", field="source")
            return capture

        if self.verifier is None:
            self.logger.warning(
                f"Rejected {capture.source.value} capture {capture.external_id} for order {order_id}: "
                f"no gateway account configured to verify it"
            )
            raise InvalidCapture("PayPal payments are not enabled", field="source")
        return await self.verifier.verify(capture, order_id)

    def _check_amount(self, order: Order, capture: Capture):
        expected = Money.from_value(order.total_price)
        received = capture.amount
        if received != expected:
            self.logger.warning(
                f"Amount mismatch on order {order.id}: captured {received}, expected {expected}"
            )
            raise PaymentAmountMismatch(
                f"Captured amount {received} does not match order total {expected}",
                field="capturedAmount"
            )

    def _already_paid(self, current: Order, capture: Capture) -> Order:
        recorded = current.payment_result
        if recorded is not None and recorded.external_id == capture.external_id:
            self.logger.info(f"Order {current.id} already paid by capture {capture.external_id}")
            return current

        self.logger.warning(
            f"Rejected second capture {capture.external_id} for order {current.id}, "
            f"already paid by {recorded.external_id if recorded else 'unknown'}"
        )
        raise AlreadyPaid(f"Order {current.id} has already been paid")
