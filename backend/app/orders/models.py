"""Domain models for orders and payment notifications."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Lifecycle status of an order. Transitions only leave ``pending``."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class PaymentOutcome(str, Enum):
    """Result reported by the external payment notifier."""

    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def target_status(self) -> OrderStatus:
        return OrderStatus.PAID if self is PaymentOutcome.SUCCESS else OrderStatus.CANCELLED


@dataclass(frozen=True)
class Principal:
    """Authenticated caller threaded into operations that authorize."""

    user_id: int
    is_admin: bool = False


class OrderLine(BaseModel):
    """A requested line: the product only, never a client-side price."""

    product_id: int
    quantity: int = 1

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class OrderItem(BaseModel):
    """Price snapshot of one purchased product."""

    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    price: Decimal = Field(ge=0)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Order(BaseModel):
    """Purchase record retained for audit; never deleted."""

    id: int
    user_id: int
    total_amount: Decimal = Field(ge=0)
    status: OrderStatus = OrderStatus.PENDING
    transaction_id: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    items: List[OrderItem] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def is_owned_by(self, user_id: int) -> bool:
        return self.user_id == user_id


class OrderPage(BaseModel):
    """One page of the administrative order listing."""

    orders: List[Order]
    page: int
    page_size: int
    total: int

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total else 0


__all__ = [
    "Order",
    "OrderItem",
    "OrderLine",
    "OrderPage",
    "OrderStatus",
    "PaymentOutcome",
    "Principal",
]
