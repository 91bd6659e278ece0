# storefront/services/fulfillment_service.py
import logging
from ..database.order_store import OrderStore
from ..exceptions import Forbidden, OrderNotPaid, PredicateFailed
from ..models.order import Order
from ..models.user import Identity
from ..utils.formatters import format_datetime, now
from .access import Action, can_access

class FulfillmentService:
    """Moves paid orders to delivered"""

    def __init__(self, store: OrderStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def mark_delivered(self, order_id: str, identity: Identity) -> Order:
        order = await self.store.get(order_id)
        if not can_access(identity, order, Action.DELIVER):
            raise Forbidden()
        if not order.is_paid:
            raise OrderNotPaid()

        delivered_at = now()
        try:
            delivered = await self.store.conditional_update(
                order_id,
                lambda current: current.is_paid and not current.is_delivered,
                lambda current: current.with_changes(is_delivered=True, delivered_at=delivered_at),
            )
        except PredicateFailed as e:
            if e.current.is_delivered:
                self.logger.info(f"Order {order_id} already delivered")
                return e.current
            raise OrderNotPaid()

        self.logger.info(f"Order {order_id} delivered at {format_datetime(delivered_at)}")
        return delivered
