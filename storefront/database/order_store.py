# storefront/database/order_store.py
"""Keyed storage for orders.

``conditional_update`` is the single synchronization point for order state
changes: reading the record, evaluating the predicate and writing the mutated
record happen as one atomic step per order id. Every operation is bounded by
``Config.STORE_TIMEOUT`` and reports ``StorageUnavailable`` instead of hanging.
A capture id can be recorded on at most one order; a second order claiming
it raises ``DuplicateCapture``.
"""
import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Callable, Dict, List, Optional

import asyncpg

from ..config import Config
from ..exceptions import (
    DuplicateCapture, DuplicateKey, OrderNotFound, PredicateFailed, StorageUnavailable
)
from ..models.order import MUTABLE_FIELDS, Order
from .database import Database

Predicate = Callable[[Order], bool]
Mutation = Callable[[Order], Order]


def new_order_id() -> str:
    return uuid.uuid4().hex[:24]


def _apply(current: Order, mutation: Mutation) -> Order:
    """Run a mutation, keeping only its changes to lifecycle fields"""
    updated = mutation(current)
    return current.with_changes(**{name: getattr(updated, name) for name in MUTABLE_FIELDS})


class OrderStore:
    """Interface shared by the store backends"""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else Config.STORE_TIMEOUT
        self.logger = logging.getLogger(__name__)

    async def _bounded(self, operation: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Store {operation} timed out after {self.timeout}s")
            raise StorageUnavailable(f"Order storage timed out during {operation}")

    async def create(self, order: Order) -> str:
        """Persist a new order and return its id"""
        return await self._bounded("create", self._create(order))

    async def get(self, order_id: str) -> Order:
        return await self._bounded("get", self._get(order_id))

    async def conditional_update(self, order_id: str, predicate: Predicate, mutation: Mutation) -> Order:
        """Atomically apply mutation if predicate holds for the stored order"""
        return await self._bounded(
            "conditional_update", self._conditional_update(order_id, predicate, mutation)
        )

    async def list_by_owner(self, owner_id: str) -> List[Order]:
        return await self._bounded("list_by_owner", self._list(owner_id))

    async def list_all(self) -> List[Order]:
        return await self._bounded("list_all", self._list(None))

    async def _create(self, order: Order) -> str:
        raise NotImplementedError

    async def _get(self, order_id: str) -> Order:
        raise NotImplementedError

    async def _conditional_update(self, order_id: str, predicate: Predicate, mutation: Mutation) -> Order:
        raise NotImplementedError

    async def _list(self, owner_id: Optional[str]) -> List[Order]:
        raise NotImplementedError

    async def close(self):
        pass


class MemoryOrderStore(OrderStore):
    """Process-local store with one lock per order id"""

    def __init__(self, timeout: Optional[float] = None):
        super().__init__(timeout)
        self._orders: Dict[str, Order] = {}
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # capture id -> order id
        self._captures: Dict[str, str] = {}

    def _claim_capture(self, order: Order):
        if order.payment_result is None:
            return
        external_id = order.payment_result.external_id
        holder = self._captures.get(external_id)
        if holder is not None and holder != order.id:
            raise DuplicateCapture(external_id, holder)
        self._captures[external_id] = order.id

    async def _create(self, order: Order) -> str:
        order_id = order.id or new_order_id()
        async with self._locks[order_id]:
            if order_id in self._orders:
                raise DuplicateKey(order_id)
            stored = order.model_copy(update={"id": order_id})
            self._claim_capture(stored)
            self._orders[order_id] = stored
        return order_id

    async def _get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    async def _conditional_update(self, order_id: str, predicate: Predicate, mutation: Mutation) -> Order:
        if order_id not in self._orders:
            raise OrderNotFound(order_id)
        async with self._locks[order_id]:
            current = await self._get(order_id)
            # yield while holding the lock, as a database round trip would
            await asyncio.sleep(0)
            if not predicate(current):
                raise PredicateFailed(current)
            updated = _apply(current, mutation)
            self._claim_capture(updated)
            self._orders[order_id] = updated
            return updated

    async def _list(self, owner_id: Optional[str]) -> List[Order]:
        orders = [
            order for order in self._orders.values()
            if owner_id is None or order.owner_id == owner_id
        ]
        return sorted(orders, key=lambda order: order.created_at, reverse=True)


class PostgresOrderStore(OrderStore):
    """Orders table in PostgreSQL, row-locked for conditional updates"""

    PAYMENT_INDEX = "idx_orders_payment_id"

    COLUMNS = """
        order_id, owner_id, items, shipping_address, payment_method,
        items_price, shipping_price, tax_price, total_price,
        is_paid, paid_at, payment_result, is_delivered, delivered_at, created_at
    """

    def __init__(self, db: Database, timeout: Optional[float] = None):
        super().__init__(timeout)
        self.db = db

    async def _bounded(self, operation: str, coro):
        try:
            return await super()._bounded(operation, coro)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            self.logger.error(f"Store {operation} failed: {e}")
            raise StorageUnavailable()

    @staticmethod
    def _row_to_order(row) -> Order:
        data = dict(row)
        data["id"] = data.pop("order_id")
        return Order.model_validate(data)

    async def _create(self, order: Order) -> str:
        order_id = order.id or new_order_id()
        try:
            async with self.db.pool.acquire() as conn:
                await conn.execute(f"""
                    INSERT INTO orders ({self.COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
                """,
                    order_id,
                    order.owner_id,
                    [item.model_dump(mode="json") for item in order.items],
                    order.shipping_address.model_dump(mode="json"),
                    order.payment_method,
                    order.items_price,
                    order.shipping_price,
                    order.tax_price,
                    order.total_price,
                    order.is_paid,
                    order.paid_at,
                    order.payment_result.model_dump(mode="json") if order.payment_result else None,
                    order.is_delivered,
                    order.delivered_at,
                    order.created_at
                )
        except asyncpg.UniqueViolationError as e:
            if e.constraint_name == self.PAYMENT_INDEX:
                raise DuplicateCapture(order.payment_result.external_id)
            raise DuplicateKey(order_id)
        return order_id

    async def _get(self, order_id: str) -> Order:
        async with self.db.pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                SELECT {self.COLUMNS} FROM orders WHERE order_id = $1
            """, order_id)
        if not row:
            raise OrderNotFound(order_id)
        return self._row_to_order(row)

    async def _conditional_update(self, order_id: str, predicate: Predicate, mutation: Mutation) -> Order:
        async with self.db.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(f"""
                    SELECT {self.COLUMNS} FROM orders
                    WHERE order_id = $1
                    FOR UPDATE
                """, order_id)
                if not row:
                    raise OrderNotFound(order_id)

                current = self._row_to_order(row)
                if not predicate(current):
                    raise PredicateFailed(current)

                updated = _apply(current, mutation)
                try:
                    await conn.execute("""
                        UPDATE orders
                        SET is_paid = $1,
                            paid_at = $2,
                            payment_result = $3,
                            is_delivered = $4,
                            delivered_at = $5
                        WHERE order_id = $6
                    """,
                        updated.is_paid,
                        updated.paid_at,
                        updated.payment_result.model_dump(mode="json") if updated.payment_result else None,
                        updated.is_delivered,
                        updated.delivered_at,
                        order_id
                    )
                except asyncpg.UniqueViolationError as e:
                    if e.constraint_name != self.PAYMENT_INDEX:
                        raise
                    raise DuplicateCapture(updated.payment_result.external_id)
                return updated

    async def _list(self, owner_id: Optional[str]) -> List[Order]:
        async with self.db.pool.acquire() as conn:
            if owner_id is None:
                rows = await conn.fetch(f"""
                    SELECT {self.COLUMNS} FROM orders
                    ORDER BY created_at DESC
                """)
            else:
                rows = await conn.fetch(f"""
                    SELECT {self.COLUMNS} FROM orders
                    WHERE owner_id = $1
                    ORDER BY created_at DESC
                """, owner_id)
        return [self._row_to_order(row) for row in rows]

    async def close(self):
        await self.db.close()
