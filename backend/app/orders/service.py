"""Order creation, lookup and administrative listing."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol, Sequence

from ..audit import AuditEvent, AuditEventType, AuditLogger
from ..catalog import ProductCatalog
from ..clock import Clock, current_time
from ..exceptions import AuthorizationError, NotFoundError, ValidationError
from .models import Order, OrderItem, OrderLine, OrderPage, OrderStatus, Principal


class OrderRepository(Protocol):
    """Persistence operations required by the order and payment services."""

    def create_order(
        self,
        *,
        user_id: int,
        items: Sequence[OrderItem],
        total_amount: Decimal,
        payment_method: Optional[str],
        created_at: datetime,
    ) -> Order:
        """Persist the order and all of its items as one atomic unit."""

    def get_order(self, order_id: int) -> Optional[Order]:
        ...

    def list_orders_for_user(self, user_id: int) -> Sequence[Order]:
        ...

    def count_orders(self, *, status: Optional[OrderStatus] = None) -> int:
        ...

    def list_orders(
        self,
        *,
        offset: int,
        limit: int,
        status: Optional[OrderStatus] = None,
    ) -> Sequence[Order]:
        ...

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
        """Compare-and-set the status; raises ``ConflictError`` when ``expected`` no longer holds."""


@dataclass
class OrderService:
    """Creates orders from catalog prices and enforces ownership on reads."""

    repository: OrderRepository
    catalog: ProductCatalog
    audit_logger: AuditLogger
    clock: Optional[Clock] = None
    default_payment_method: Optional[str] = None
    default_page_size: int = 20
    max_page_size: int = 100

    def create_order(
        self,
        user_id: int,
        lines: Sequence[OrderLine],
        *,
        payment_method: Optional[str] = None,
    ) -> Order:
        if not lines:
            raise ValidationError("Order must contain at least one item")

        items: List[OrderItem] = []
        for line in lines:
            if line.quantity != 1:
                raise ValidationError(
                    "Each order line licenses exactly one copy of a product",
                    detail={"product_id": line.product_id, "quantity": line.quantity},
                )
            product = self.catalog.get_by_id(line.product_id)
            if product is None:
                raise NotFoundError(
                    f"Product {line.product_id} does not exist",
                    detail={"product_id": line.product_id},
                )
            items.append(OrderItem(product_id=product.id, price=product.price))

        total_amount = sum((item.price for item in items), Decimal("0"))
        order = self.repository.create_order(
            user_id=user_id,
            items=items,
            total_amount=total_amount,
            payment_method=payment_method or self.default_payment_method,
            created_at=current_time(self.clock),
        )
        self.audit_logger.log(
            AuditEvent(
                event_type=AuditEventType.ORDER_CREATED,
                order_id=order.id,
                user_id=order.user_id,
                metadata={"total_amount": str(order.total_amount), "items": str(len(order.items))},
            )
        )
        return order

    def get_order(self, principal: Principal, order_id: int) -> Order:
        order = self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist", detail={"order_id": order_id})
        if not principal.is_admin and not order.is_owned_by(principal.user_id):
            raise AuthorizationError("Not allowed to view this order", detail={"order_id": order_id})
        return order

    def list_user_orders(self, user_id: int) -> List[Order]:
        return list(self.repository.list_orders_for_user(user_id))

    def list_all_orders(
        self,
        principal: Principal,
        *,
        page: int = 1,
        page_size: Optional[int] = None,
        status: Optional[OrderStatus] = None,
    ) -> OrderPage:
        if not principal.is_admin:
            raise AuthorizationError("Administrator privileges required")

        size = self.default_page_size if page_size is None else page_size
        size = min(max(1, size), self.max_page_size)
        total = self.repository.count_orders(status=status)
        last_page = max(1, -(-total // size))
        current_page = min(max(1, page), last_page)

        orders = self.repository.list_orders(
            offset=(current_page - 1) * size,
            limit=size,
            status=status,
        )
        return OrderPage(orders=list(orders), page=current_page, page_size=size, total=total)


__all__ = ["OrderRepository", "OrderService"]
