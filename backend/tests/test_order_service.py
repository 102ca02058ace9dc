"""Unit tests for order creation, lookup and the administrative listing."""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from backend.app.audit import AuditEventType
from backend.app.exceptions import AuthorizationError, NotFoundError, ValidationError
from backend.app.orders import OrderLine, OrderStatus, Principal


def test_create_order_prices_items_from_catalog(order_service, audit_logger):
    order = order_service.create_order(7, [OrderLine(product_id=1), OrderLine(product_id=2)])

    assert order.status == OrderStatus.PENDING
    assert order.user_id == 7
    assert order.total_amount == Decimal("34.50")
    assert [item.price for item in order.items] == [Decimal("10.00"), Decimal("24.50")]
    assert all(item.order_id == order.id for item in order.items)
    assert order.payment_method == "alipay"
    assert order.transaction_id is None

    created = audit_logger.of_type(AuditEventType.ORDER_CREATED)
    assert len(created) == 1
    assert created[0].order_id == order.id
    assert created[0].metadata["total_amount"] == "34.50"


def test_create_order_keeps_requested_payment_method(order_service):
    order = order_service.create_order(7, [OrderLine(product_id=1)], payment_method="wechat")

    assert order.payment_method == "wechat"


def test_create_order_accepts_free_product(order_service):
    order = order_service.create_order(7, [OrderLine(product_id=3)])

    assert order.total_amount == Decimal("0")


def test_create_order_rejects_empty_lines(order_service, order_repository):
    with pytest.raises(ValidationError):
        order_service.create_order(7, [])

    assert order_repository.count_orders() == 0


def test_create_order_rejects_unknown_product_without_writing(order_service, order_repository, audit_logger):
    with pytest.raises(NotFoundError) as excinfo:
        order_service.create_order(7, [OrderLine(product_id=1), OrderLine(product_id=999)])

    assert excinfo.value.detail == {"product_id": 999}
    assert order_repository.count_orders() == 0
    assert audit_logger.events == []


def test_create_order_rejects_quantity_other_than_one(order_service, order_repository):
    with pytest.raises(ValidationError) as excinfo:
        order_service.create_order(7, [OrderLine(product_id=1, quantity=3)])

    assert excinfo.value.status_code == 400
    assert order_repository.count_orders() == 0


def test_get_order_allows_owner_and_admin(order_service):
    order = order_service.create_order(7, [OrderLine(product_id=1)])

    assert order_service.get_order(Principal(user_id=7), order.id).id == order.id
    assert order_service.get_order(Principal(user_id=1, is_admin=True), order.id).id == order.id


def test_get_order_rejects_other_users(order_service):
    order = order_service.create_order(7, [OrderLine(product_id=1)])

    with pytest.raises(AuthorizationError):
        order_service.get_order(Principal(user_id=8), order.id)


def test_get_order_missing_raises_not_found(order_service):
    with pytest.raises(NotFoundError):
        order_service.get_order(Principal(user_id=7), 404)


def test_list_user_orders_newest_first_and_scoped(order_service, clock):
    first = order_service.create_order(7, [OrderLine(product_id=1)])
    clock.advance(timedelta(minutes=1))
    order_service.create_order(8, [OrderLine(product_id=1)])
    clock.advance(timedelta(minutes=1))
    second = order_service.create_order(7, [OrderLine(product_id=2)])

    orders = order_service.list_user_orders(7)

    assert [order.id for order in orders] == [second.id, first.id]


def test_list_user_orders_empty_for_new_user(order_service):
    assert order_service.list_user_orders(42) == []


def _seed(order_service, clock, count: int):
    created = []
    for index in range(count):
        created.append(order_service.create_order(100 + index, [OrderLine(product_id=1)]))
        clock.advance(timedelta(minutes=1))
    return created


def test_list_all_orders_requires_admin(order_service):
    with pytest.raises(AuthorizationError):
        order_service.list_all_orders(Principal(user_id=7))


def test_list_all_orders_paginates_newest_first(order_service, clock):
    created = _seed(order_service, clock, 5)
    admin = Principal(user_id=1, is_admin=True)

    first_page = order_service.list_all_orders(admin)
    last_page = order_service.list_all_orders(admin, page=3)

    assert first_page.page == 1
    assert first_page.page_size == 2
    assert first_page.total == 5
    assert first_page.pages == 3
    assert [order.id for order in first_page.orders] == [created[4].id, created[3].id]
    assert [order.id for order in last_page.orders] == [created[0].id]


def test_list_all_orders_clamps_page_and_size(order_service, clock):
    _seed(order_service, clock, 5)
    admin = Principal(user_id=1, is_admin=True)

    beyond = order_service.list_all_orders(admin, page=10)
    oversized = order_service.list_all_orders(admin, page=0, page_size=500)

    assert beyond.page == 3
    assert len(beyond.orders) == 1
    assert oversized.page == 1
    assert oversized.page_size == 5
    assert len(oversized.orders) == 5


def test_list_all_orders_filters_by_status(order_service, order_repository, clock):
    created = _seed(order_service, clock, 3)
    order_repository.transition_status(
        created[1].id,
        expected=OrderStatus.PENDING,
        new_status=OrderStatus.PAID,
        transaction_id="tx-1",
        payment_method=None,
        updated_at=clock(),
    )
    admin = Principal(user_id=1, is_admin=True)

    paid = order_service.list_all_orders(admin, status=OrderStatus.PAID)

    assert paid.total == 1
    assert [order.id for order in paid.orders] == [created[1].id]


def test_list_all_orders_with_no_orders(order_service):
    result = order_service.list_all_orders(Principal(user_id=1, is_admin=True))

    assert result.orders == []
    assert result.total == 0
    assert result.pages == 0
    assert result.page == 1
