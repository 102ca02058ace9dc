"""API schemas for order, payment and download endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer

from ..downloads import DownloadAccess, DownloadGrant
from ..orders import Order, OrderItem, OrderLine, OrderPage, OrderStatus, PaymentOutcome

# Amounts stay Decimal in Python and go out as JSON numbers.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class OrderLineRequest(BaseModel):
    product_id: int = Field(alias="productId")
    quantity: int = Field(default=1, ge=1)

    # Prices always come from the catalog.
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CreateOrderRequest(BaseModel):
    items: List[OrderLineRequest] = Field(default_factory=list)
    payment_method: Optional[str] = Field(alias="paymentMethod", default=None, max_length=32)

    model_config = ConfigDict(populate_by_name=True)

    def to_lines(self) -> List[OrderLine]:
        return [OrderLine(product_id=item.product_id, quantity=item.quantity) for item in self.items]


class OrderItemResponse(BaseModel):
    id: Optional[int] = None
    product_id: int = Field(alias="productId")
    price: Money

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(id=item.id, product_id=item.product_id, price=item.price)


class OrderResponse(BaseModel):
    id: int
    user_id: int = Field(alias="userId")
    total_amount: Money = Field(alias="totalAmount")
    status: OrderStatus
    transaction_id: Optional[str] = Field(alias="transactionId", default=None)
    payment_method: Optional[str] = Field(alias="paymentMethod", default=None)
    created_at: datetime = Field(alias="createdAt")
    items: List[OrderItemResponse] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            user_id=order.user_id,
            total_amount=order.total_amount,
            status=order.status,
            transaction_id=order.transaction_id,
            payment_method=order.payment_method,
            created_at=order.created_at,
            items=[OrderItemResponse.from_item(item) for item in order.items],
        )


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]

    model_config = ConfigDict(populate_by_name=True)


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    model_config = ConfigDict(populate_by_name=True)


class OrderPageResponse(BaseModel):
    orders: List[OrderResponse]
    pagination: PaginationInfo

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_page(cls, page: OrderPage) -> "OrderPageResponse":
        return cls(
            orders=[OrderResponse.from_order(order) for order in page.orders],
            pagination=PaginationInfo(
                page=page.page,
                limit=page.page_size,
                total=page.total,
                pages=page.pages,
            ),
        )


class PaymentCallbackRequest(BaseModel):
    order_id: int = Field(alias="orderId")
    status: PaymentOutcome
    transaction_id: Optional[str] = Field(alias="transactionId", default=None, max_length=128)
    payment_method: Optional[str] = Field(alias="paymentMethod", default=None, max_length=32)

    model_config = ConfigDict(populate_by_name=True)


class IssuedGrantResponse(BaseModel):
    id: Optional[int] = None
    order_item_id: Optional[int] = Field(alias="orderItemId", default=None)
    product_id: int = Field(alias="productId")
    expires_at: datetime = Field(alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_grant(cls, grant: DownloadGrant) -> "IssuedGrantResponse":
        return cls(
            id=grant.id,
            order_item_id=grant.order_item_id,
            product_id=grant.product_id,
            expires_at=grant.expires_at,
        )


class EntitlementRetryResponse(BaseModel):
    order_id: int = Field(alias="orderId")
    issued: List[IssuedGrantResponse]

    model_config = ConfigDict(populate_by_name=True)


class DownloadAccessResponse(BaseModel):
    product_id: int = Field(alias="productId")
    download_url: str = Field(alias="downloadUrl")
    token: str
    expires_at: datetime = Field(alias="expiresAt")
    download_count: int = Field(alias="downloadCount")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_access(cls, access: DownloadAccess) -> "DownloadAccessResponse":
        return cls(
            product_id=access.product_id,
            download_url=access.redemption_target,
            token=access.token,
            expires_at=access.expires_at,
            download_count=access.download_count,
        )
