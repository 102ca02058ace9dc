from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Optional, Tuple

import psycopg2
import psycopg2.extras
import pytest

from backend import app_context
from backend.app.catalog import PostgresProductCatalog
from backend.app.downloads import DownloadGrant, PostgresDownloadRepository
from backend.app.exceptions import ConflictError, NotFoundError, StorageError
from backend.app.orders import OrderItem, OrderStatus, PostgresOrderRepository
from backend.config import load_config

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _normalize(query: str) -> str:
    return " ".join(query.split())


class _FakeCursor:
    def __init__(self, responses: List[Any]) -> None:
        self._responses = responses
        self._result: Any = None
        self.executed: List[Tuple[str, Optional[tuple]]] = []
        self.closed = False

    def execute(self, query: str, params: Optional[tuple] = None) -> None:
        self.executed.append((_normalize(query), params))
        response = self._responses.pop(0) if self._responses else None
        if isinstance(response, Exception):
            raise response
        self._result = response

    def fetchone(self):
        if isinstance(self._result, list):
            return self._result[0] if self._result else None
        return self._result

    def fetchall(self):
        if self._result is None:
            return []
        return self._result if isinstance(self._result, list) else [self._result]

    def close(self) -> None:
        self.closed = True


class _FakeConnection:
    def __init__(self, responses: List[Any]) -> None:
        self.cursor_obj = _FakeCursor(responses)
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.cursor_factory = None

    def cursor(self, cursor_factory=None):
        self.cursor_factory = cursor_factory
        return self.cursor_obj

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True

    @property
    def executed(self):
        return self.cursor_obj.executed


def _configure(responses: List[Any]) -> _FakeConnection:
    connection = _FakeConnection(responses)
    app_context.configure(config=load_config({}), get_conn=lambda: connection)
    return connection


def _order_row(**overrides):
    row = {
        "id": 5,
        "user_id": 9,
        "total_amount": Decimal("34.50"),
        "status": "pending",
        "transaction_id": None,
        "payment_method": "alipay",
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


def _grant_row(**overrides):
    row = {
        "id": 3,
        "user_id": 9,
        "product_id": 1,
        "order_id": 5,
        "order_item_id": 50,
        "download_token": "a" * 64,
        "expires_at": NOW + timedelta(days=7),
        "download_count": 0,
        "created_at": NOW,
    }
    row.update(overrides)
    return row


def test_create_order_writes_order_and_items_in_one_transaction():
    connection = _configure(
        [
            _order_row(),
            {"id": 50, "order_id": 5, "product_id": 1, "price": Decimal("10.00")},
            {"id": 51, "order_id": 5, "product_id": 2, "price": Decimal("24.50")},
        ]
    )
    repository = PostgresOrderRepository()

    order = repository.create_order(
        user_id=9,
        items=[
            OrderItem(product_id=1, price=Decimal("10.00")),
            OrderItem(product_id=2, price=Decimal("24.50")),
        ],
        total_amount=Decimal("34.50"),
        payment_method="alipay",
        created_at=NOW,
    )

    assert order.id == 5
    assert [item.id for item in order.items] == [50, 51]
    assert len(connection.executed) == 3
    assert connection.executed[0][0].startswith("INSERT INTO orders")
    assert connection.executed[1][1] == (5, 1, Decimal("10.00"))
    assert connection.commits == 1
    assert connection.rollbacks == 0
    assert connection.closed is True
    assert connection.cursor_factory is psycopg2.extras.RealDictCursor


def test_create_order_rolls_back_when_an_item_insert_fails():
    connection = _configure(
        [
            _order_row(),
            {"id": 50, "order_id": 5, "product_id": 1, "price": Decimal("10.00")},
            psycopg2.OperationalError("server closed the connection unexpectedly"),
        ]
    )
    repository = PostgresOrderRepository()

    with pytest.raises(StorageError):
        repository.create_order(
            user_id=9,
            items=[
                OrderItem(product_id=1, price=Decimal("10.00")),
                OrderItem(product_id=2, price=Decimal("24.50")),
            ],
            total_amount=Decimal("34.50"),
            payment_method="alipay",
            created_at=NOW,
        )

    assert [query.split(" (")[0] for query, _ in connection.executed] == [
        "INSERT INTO orders",
        "INSERT INTO order_items",
        "INSERT INTO order_items",
    ]
    assert connection.rollbacks == 1
    assert connection.commits == 0
    assert connection.closed is True
    assert connection.cursor_obj.closed is True


def test_transition_status_is_compare_and_set():
    connection = _configure(
        [
            _order_row(status="paid", transaction_id="tx-1"),
            [{"id": 50, "order_id": 5, "product_id": 1, "price": Decimal("10.00")}],
        ]
    )
    repository = PostgresOrderRepository()

    order = repository.transition_status(
        5,
        expected=OrderStatus.PENDING,
        new_status=OrderStatus.PAID,
        transaction_id="tx-1",
        payment_method=None,
        updated_at=NOW,
    )

    query, params = connection.executed[0]
    assert query.startswith("UPDATE orders SET status = %s")
    assert "WHERE id = %s AND status = %s RETURNING *" in query
    assert params == ("paid", "tx-1", None, NOW, 5, "pending")
    assert order.status == OrderStatus.PAID
    assert order.transaction_id == "tx-1"
    assert len(order.items) == 1
    assert connection.commits == 1


def test_transition_status_conflict_when_status_moved():
    connection = _configure([None, {"status": "cancelled"}])
    repository = PostgresOrderRepository()

    with pytest.raises(ConflictError):
        repository.transition_status(
            5,
            expected=OrderStatus.PENDING,
            new_status=OrderStatus.PAID,
            transaction_id="tx-1",
            payment_method=None,
            updated_at=NOW,
        )

    assert connection.rollbacks == 1
    assert connection.commits == 0


def test_transition_status_missing_order():
    _configure([None, None])
    repository = PostgresOrderRepository()

    with pytest.raises(NotFoundError):
        repository.transition_status(
            404,
            expected=OrderStatus.PENDING,
            new_status=OrderStatus.CANCELLED,
            transaction_id=None,
            payment_method=None,
            updated_at=NOW,
        )


def test_list_orders_attaches_items_in_one_query():
    connection = _configure(
        [
            [_order_row(id=6), _order_row(id=5)],
            [
                {"id": 50, "order_id": 5, "product_id": 1, "price": Decimal("10.00")},
                {"id": 60, "order_id": 6, "product_id": 2, "price": Decimal("24.50")},
            ],
        ]
    )
    repository = PostgresOrderRepository()

    orders = repository.list_orders(offset=20, limit=10, status=OrderStatus.PENDING)

    assert [order.id for order in orders] == [6, 5]
    assert [item.id for item in orders[0].items] == [60]
    assert connection.executed[0][1] == ("pending", 10, 20)
    assert "ORDER BY created_at DESC, id DESC" in connection.executed[0][0]
    assert connection.executed[1][1] == ([6, 5],)


def test_count_orders_reads_total():
    _configure([{"total": 12}])

    assert PostgresOrderRepository().count_orders() == 12


def test_increment_download_count_is_a_single_atomic_update():
    connection = _configure([_grant_row(download_count=4)])
    repository = PostgresDownloadRepository()

    grant = repository.increment_download_count("a" * 64, now=NOW)

    assert len(connection.executed) == 1
    query, params = connection.executed[0]
    assert "SET download_count = download_count + 1" in query
    assert "WHERE download_token = %s AND expires_at > %s" in query
    assert params == ("a" * 64, NOW)
    assert grant.download_count == 4
    assert grant.token == "a" * 64


def test_increment_download_count_returns_none_when_expired():
    _configure([None])

    assert PostgresDownloadRepository().increment_download_count("a" * 64, now=NOW) is None


def test_create_grant_returns_existing_grant_for_order_item():
    connection = _configure([None, _grant_row(download_token="b" * 64)])
    repository = PostgresDownloadRepository()

    grant = repository.create_grant(
        DownloadGrant(
            user_id=9,
            product_id=1,
            order_id=5,
            order_item_id=50,
            token="c" * 64,
            expires_at=NOW + timedelta(days=7),
            created_at=NOW,
        )
    )

    assert "ON CONFLICT (order_item_id) DO NOTHING" in connection.executed[0][0]
    assert connection.executed[1] == ("SELECT * FROM downloads WHERE order_item_id = %s", (50,))
    assert grant.token == "b" * 64


def test_find_latest_active_filters_unexpired():
    connection = _configure([_grant_row()])

    grant = PostgresDownloadRepository().find_latest_active(9, 1, now=NOW)

    query, params = connection.executed[0]
    assert "expires_at > %s" in query
    assert "ORDER BY created_at DESC, id DESC LIMIT 1" in query
    assert params == (9, 1, NOW)
    assert grant.order_item_id == 50


def test_driver_failure_surfaces_as_storage_error():
    connection = _configure([psycopg2.OperationalError("canceling statement due to statement timeout")])

    with pytest.raises(StorageError) as excinfo:
        PostgresDownloadRepository().get_by_token("a" * 64)

    assert excinfo.value.retryable is True
    assert excinfo.value.status_code == 503
    assert connection.rollbacks == 1
    assert connection.closed is True


def test_unique_violation_surfaces_as_conflict():
    _configure([psycopg2.IntegrityError("duplicate key value violates unique constraint")])

    with pytest.raises(ConflictError):
        PostgresDownloadRepository().create_grant(
            DownloadGrant(
                user_id=9,
                product_id=1,
                token="a" * 64,
                expires_at=NOW + timedelta(days=7),
                created_at=NOW,
            )
        )


def test_explicit_connection_is_not_committed():
    connection = _FakeConnection([{"id": 1, "name": "Fox", "price": "10.00", "download_url": "https://cdn.test/fox.zip"}])

    product = PostgresProductCatalog(conn=connection).get_by_id(1)

    assert product.price == Decimal("10.00")
    assert product.download_target == "https://cdn.test/fox.zip"
    assert connection.commits == 0
    assert connection.closed is False


def test_unconfigured_context_raises():
    with pytest.raises(RuntimeError):
        PostgresProductCatalog().get_by_id(1)
