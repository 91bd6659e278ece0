# storefront/services/order_service.py
import logging
from decimal import Decimal
from typing import List, Sequence
from ..database.order_store import OrderStore
from ..exceptions import DuplicateKey, Forbidden, StorageUnavailable
from ..models.order import Order, OrderItem, ShippingAddress
from ..models.user import Identity
from ..utils.formatters import format_price, now
from .access import Action, can_access
from .cart_service import compute_totals

class OrderService:
    """Places orders and serves order reads"""

    CREATE_ATTEMPTS = 3

    def __init__(self, store: OrderStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def place_order(self, owner_id: str, items: Sequence[OrderItem],
                          shipping_address: ShippingAddress, payment_method: str,
                          shipping_price: Decimal, tax_price: Decimal) -> Order:
        """Create a new unpaid order from a validated cart"""
        totals = compute_totals(items, shipping_price, tax_price)

        order = Order(
            owner_id=owner_id,
            items=list(items),
            shipping_address=shipping_address,
            payment_method=payment_method,
            items_price=totals.items_price,
            shipping_price=totals.shipping_price,
            tax_price=totals.tax_price,
            total_price=totals.total_price,
            created_at=now(),
        )

        for attempt in range(1, self.CREATE_ATTEMPTS + 1):
            try:
                order_id = await self.store.create(order)
                break
            except DuplicateKey as e:
                self.logger.warning(f"Order id collision on {e.order_id} (attempt {attempt})")
        else:
            raise StorageUnavailable("Could not allocate an order id")

        self.logger.info(
            f"Order {order_id} placed by {owner_id}: "
            f"{len(order.items)} items, total {format_price(order.total_price)}"
        )
        return order.model_copy(update={"id": order_id})

    async def get_order(self, order_id: str, identity: Identity) -> Order:
        """Fetch an order visible to the caller"""
        order = await self.store.get(order_id)
        if not can_access(identity, order, Action.READ):
            raise Forbidden()
        return order

    async def get_user_orders(self, identity: Identity) -> List[Order]:
        """Orders placed by the caller, newest first"""
        return await self.store.list_by_owner(identity.user_id)

    async def list_orders(self, identity: Identity) -> List[Order]:
        """All orders, admins only"""
        if not can_access(identity, None, Action.LIST):
            raise Forbidden()
        return await self.store.list_all()
