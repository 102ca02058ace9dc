"""Orders domain package: models, stores and the order service."""

from .memory import InMemoryOrderRepository
from .models import (
    Order,
    OrderItem,
    OrderLine,
    OrderPage,
    OrderStatus,
    PaymentOutcome,
    Principal,
)
from .repository import PostgresOrderRepository
from .service import OrderRepository, OrderService

__all__ = [
    "InMemoryOrderRepository",
    "Order",
    "OrderItem",
    "OrderLine",
    "OrderPage",
    "OrderRepository",
    "OrderService",
    "OrderStatus",
    "PaymentOutcome",
    "PostgresOrderRepository",
    "Principal",
]
