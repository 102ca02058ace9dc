"""API routes exposing orders, payment callbacks and downloads."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from ..auth import get_current_principal, require_admin, verify_callback_secret
from ..exceptions import ExpiredError, MarketplaceError, NotFoundError
from ..orders import OrderStatus, Principal
from ..schemas.orders import (
    CreateOrderRequest,
    DownloadAccessResponse,
    EntitlementRetryResponse,
    IssuedGrantResponse,
    OrderListResponse,
    OrderPageResponse,
    OrderResponse,
    PaymentCallbackRequest,
)
from ..services import orders as order_services


logger = logging.getLogger(__name__)

INVALID_DOWNLOAD_DETAIL = "Download link is invalid or expired"

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderRequest,
    *,
    principal: Principal = Depends(get_current_principal),
) -> OrderResponse:
    service = order_services.get_order_service()
    try:
        order = service.create_order(
            principal.user_id,
            payload.to_lines(),
            payment_method=payload.payment_method,
        )
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return OrderResponse.from_order(order)


@router.get("/my-orders", response_model=OrderListResponse)
def list_my_orders(
    *,
    principal: Principal = Depends(get_current_principal),
) -> OrderListResponse:
    service = order_services.get_order_service()
    try:
        orders = service.list_user_orders(principal.user_id)
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return OrderListResponse(orders=[OrderResponse.from_order(order) for order in orders])


@router.get("", response_model=OrderPageResponse)
def list_all_orders(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    *,
    principal: Principal = Depends(require_admin),
) -> OrderPageResponse:
    service = order_services.get_order_service()
    try:
        result = service.list_all_orders(principal, page=page, page_size=limit, status=status_filter)
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return OrderPageResponse.from_page(result)


@router.post("/payment-callback", response_model=OrderResponse)
def payment_callback(
    payload: PaymentCallbackRequest,
    callback_secret: Optional[str] = Header(None, alias="X-Callback-Secret"),
) -> OrderResponse:
    verify_callback_secret(callback_secret)
    processor = order_services.get_payment_processor()
    try:
        order = processor.handle_callback(
            payload.order_id,
            payload.status,
            transaction_id=payload.transaction_id,
            payment_method=payload.payment_method,
        )
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return OrderResponse.from_order(order)


@router.get("/download/{product_id}", response_model=DownloadAccessResponse)
def get_download_access(
    product_id: int,
    *,
    principal: Principal = Depends(get_current_principal),
) -> DownloadAccessResponse:
    gate = order_services.get_download_gate()
    try:
        access = gate.resolve_by_owner_and_product(principal.user_id, product_id)
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return DownloadAccessResponse.from_access(access)


@router.get("/download-file/{token}")
def redeem_download(token: str) -> RedirectResponse:
    gate = order_services.get_download_gate()
    try:
        redemption = gate.redeem(token)
    except (NotFoundError, ExpiredError) as exc:
        logger.info("Rejected download token redemption", extra={"reason": exc.code})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INVALID_DOWNLOAD_DETAIL) from exc
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return RedirectResponse(url=redemption.target, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    *,
    principal: Principal = Depends(get_current_principal),
) -> OrderResponse:
    service = order_services.get_order_service()
    try:
        order = service.get_order(principal, order_id)
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    return OrderResponse.from_order(order)


@router.post("/{order_id}/entitlements/retry", response_model=EntitlementRetryResponse)
def retry_entitlements(
    order_id: int,
    *,
    principal: Principal = Depends(require_admin),
) -> EntitlementRetryResponse:
    processor = order_services.get_payment_processor()
    try:
        grants = processor.retry_entitlements(order_id)
    except MarketplaceError as exc:
        raise exc.to_http_exception() from exc
    logger.info("Entitlement retry by admin=%s order=%s issued=%s", principal.user_id, order_id, len(grants))
    return EntitlementRetryResponse(
        order_id=order_id,
        issued=[IssuedGrantResponse.from_grant(grant) for grant in grants],
    )
