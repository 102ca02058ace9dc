"""Persistence layer for orders and order items."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..db import transaction_cursor
from ..exceptions import ConflictError, NotFoundError
from .models import Order, OrderItem, OrderStatus


def _row_to_item(row: dict) -> OrderItem:
    return OrderItem(
        id=int(row["id"]),
        order_id=int(row["order_id"]),
        product_id=int(row["product_id"]),
        price=Decimal(str(row["price"])),
    )


def _row_to_order(row: dict, items: Sequence[OrderItem]) -> Order:
    return Order(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        total_amount=Decimal(str(row["total_amount"])),
        status=OrderStatus(row["status"]),
        transaction_id=row.get("transaction_id"),
        payment_method=row.get("payment_method"),
        created_at=row["created_at"],
        updated_at=row.get("updated_at") or row["created_at"],
        items=list(items),
    )


def _attach_items(cursor: PgCursor, rows: Sequence[dict]) -> List[Order]:
    if not rows:
        return []
    order_ids = [int(row["id"]) for row in rows]
    cursor.execute(
        """
        SELECT id, order_id, product_id, price
        FROM order_items
        WHERE order_id = ANY(%s)
        ORDER BY id
        """,
        (order_ids,),
    )
    items_by_order: Dict[int, List[OrderItem]] = {order_id: [] for order_id in order_ids}
    for item_row in cursor.fetchall():
        item = _row_to_item(item_row)
        items_by_order[item.order_id].append(item)
    return [_row_to_order(row, items_by_order[int(row["id"])]) for row in rows]


class PostgresOrderRepository:
    """Concrete repository persisting orders in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def create_order(
        self,
        *,
        user_id: int,
        items: Sequence[OrderItem],
        total_amount: Decimal,
        payment_method: Optional[str],
        created_at: datetime,
    ) -> Order:
        with transaction_cursor(self._conn, operation="orders.create") as cursor:
            cursor.execute(
                """
                INSERT INTO orders (user_id, total_amount, status, payment_method, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (user_id, total_amount, OrderStatus.PENDING.value, payment_method, created_at, created_at),
            )
            order_row = cursor.fetchone()
            stored_items: List[OrderItem] = []
            for item in items:
                cursor.execute(
                    """
                    INSERT INTO order_items (order_id, product_id, price)
                    VALUES (%s, %s, %s)
                    RETURNING id, order_id, product_id, price
                    """,
                    (order_row["id"], item.product_id, item.price),
                )
                stored_items.append(_row_to_item(cursor.fetchone()))
        return _row_to_order(order_row, stored_items)

    def get_order(self, order_id: int) -> Optional[Order]:
        with transaction_cursor(self._conn, operation="orders.get") as cursor:
            cursor.execute("SELECT * FROM orders WHERE id = %s", (order_id,))
            row = cursor.fetchone()
            orders = _attach_items(cursor, [row] if row else [])
        return orders[0] if orders else None

    def list_orders_for_user(self, user_id: int) -> Sequence[Order]:
        with transaction_cursor(self._conn, operation="orders.list_for_user") as cursor:
            cursor.execute(
                "SELECT * FROM orders WHERE user_id = %s ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            return _attach_items(cursor, cursor.fetchall())

    def count_orders(self, *, status: Optional[OrderStatus] = None) -> int:
        with transaction_cursor(self._conn, operation="orders.count") as cursor:
            if status is None:
                cursor.execute("SELECT COUNT(*) AS total FROM orders")
            else:
                cursor.execute("SELECT COUNT(*) AS total FROM orders WHERE status = %s", (status.value,))
            row = cursor.fetchone()
        return int(row["total"]) if row else 0

    def list_orders(
        self,
        *,
        offset: int,
        limit: int,
        status: Optional[OrderStatus] = None,
    ) -> Sequence[Order]:
        with transaction_cursor(self._conn, operation="orders.list") as cursor:
            if status is None:
                cursor.execute(
                    "SELECT * FROM orders ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s",
                    (limit, offset),
                )
            else:
                cursor.execute(
                    """
                    SELECT * FROM orders
                    WHERE status = %s
                    ORDER BY created_at DESC, id DESC
                    LIMIT %s OFFSET %s
                    """,
                    (status.value, limit, offset),
                )
            return _attach_items(cursor, cursor.fetchall())

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
        with transaction_cursor(self._conn, operation="orders.transition_status") as cursor:
            cursor.execute(
                """
                UPDATE orders
                SET status = %s,
                    transaction_id = COALESCE(%s, transaction_id),
                    payment_method = COALESCE(%s, payment_method),
                    updated_at = %s
                WHERE id = %s AND status = %s
                RETURNING *
                """,
                (new_status.value, transaction_id, payment_method, updated_at, order_id, expected.value),
            )
            row = cursor.fetchone()
            if row is None:
                cursor.execute("SELECT status FROM orders WHERE id = %s", (order_id,))
                current = cursor.fetchone()
                if current is None:
                    raise NotFoundError(f"Order {order_id} does not exist", detail={"order_id": order_id})
                raise ConflictError(
                    f"Order {order_id} is {current['status']}, expected {expected.value}",
                    detail={"order_id": order_id},
                )
            return _attach_items(cursor, [row])[0]


__all__ = ["PostgresOrderRepository"]
