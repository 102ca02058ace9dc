"""In-memory order store for tests and local development."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from itertools import count
from threading import Lock
from typing import Dict, List, Optional, Sequence

from ..exceptions import ConflictError, NotFoundError
from .models import Order, OrderItem, OrderStatus


def _newest_first(orders: Sequence[Order]) -> List[Order]:
    return sorted(orders, key=lambda order: (order.created_at, order.id), reverse=True)


class InMemoryOrderRepository:
    """Order store guarded by a single lock so every write is atomic."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._orders: Dict[int, Order] = {}
        self._order_ids = count(1)
        self._item_ids = count(1)

    def create_order(
        self,
        *,
        user_id: int,
        items: Sequence[OrderItem],
        total_amount: Decimal,
        payment_method: Optional[str],
        created_at: datetime,
    ) -> Order:
        with self._lock:
            order_id = next(self._order_ids)
            stored_items = [
                item.model_copy(update={"id": next(self._item_ids), "order_id": order_id})
                for item in items
            ]
            order = Order(
                id=order_id,
                user_id=user_id,
                total_amount=total_amount,
                status=OrderStatus.PENDING,
                payment_method=payment_method,
                created_at=created_at,
                updated_at=created_at,
                items=stored_items,
            )
            self._orders[order_id] = order
            return order

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def list_orders_for_user(self, user_id: int) -> Sequence[Order]:
        with self._lock:
            return _newest_first([order for order in self._orders.values() if order.user_id == user_id])

    def count_orders(self, *, status: Optional[OrderStatus] = None) -> int:
        with self._lock:
            return sum(1 for order in self._orders.values() if status is None or order.status == status)

    def list_orders(
        self,
        *,
        offset: int,
        limit: int,
        status: Optional[OrderStatus] = None,
    ) -> Sequence[Order]:
        with self._lock:
            matching = [order for order in self._orders.values() if status is None or order.status == status]
        return _newest_first(matching)[offset : offset + limit]

    def transition_status(
        self,
        order_id: int,
        *,
        expected: OrderStatus,
        new_status: OrderStatus,
        transaction_id: Optional[str],
        payment_method: Optional[str],
        updated_at: datetime,
    ) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} does not exist", detail={"order_id": order_id})
            if order.status != expected:
                raise ConflictError(
                    f"Order {order_id} is {order.status.value}, expected {expected.value}",
                    detail={"order_id": order_id},
                )
            updated = order.model_copy(
                update={
                    "status": new_status,
                    "transaction_id": transaction_id or order.transaction_id,
                    "payment_method": payment_method or order.payment_method,
                    "updated_at": updated_at,
                }
            )
            self._orders[order_id] = updated
            return updated


__all__ = ["InMemoryOrderRepository"]
