import pathlib
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend import app_context
from backend.app.audit import AuditEvent, AuditEventType
from backend.app.catalog import CatalogProduct, InMemoryProductCatalog
from backend.app.downloads import DownloadGate, EntitlementIssuer, InMemoryDownloadRepository
from backend.app.orders import InMemoryOrderRepository, OrderService
from backend.app.payments import PaymentProcessor


class RecordingAuditLogger:
    def __init__(self) -> None:
        self.events: List[AuditEvent] = []

    def log(self, event: AuditEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        return [event for event in self.events if event.event_type == event_type]


class ManualClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture(autouse=True)
def _reset_app_context():
    app_context.reset()
    yield
    app_context.reset()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def audit_logger() -> RecordingAuditLogger:
    return RecordingAuditLogger()


@pytest.fixture
def catalog() -> InMemoryProductCatalog:
    return InMemoryProductCatalog(
        [
            CatalogProduct(id=1, name="Low-poly fox", price=Decimal("10.00"), download_target="https://cdn.test/fox.zip"),
            CatalogProduct(id=2, name="Castle kit", price=Decimal("24.50"), download_target="https://cdn.test/castle.zip"),
            CatalogProduct(id=3, name="Free rock", price=Decimal("0"), download_target="https://cdn.test/rock.zip"),
        ]
    )


@pytest.fixture
def order_repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def download_repository() -> InMemoryDownloadRepository:
    return InMemoryDownloadRepository()


@pytest.fixture
def order_service(order_repository, catalog, audit_logger, clock) -> OrderService:
    return OrderService(
        repository=order_repository,
        catalog=catalog,
        audit_logger=audit_logger,
        clock=clock,
        default_payment_method="alipay",
        default_page_size=2,
        max_page_size=5,
    )


@pytest.fixture
def issuer(download_repository, clock) -> EntitlementIssuer:
    return EntitlementIssuer(repository=download_repository, clock=clock)


@pytest.fixture
def processor(order_repository, issuer, audit_logger, clock) -> PaymentProcessor:
    return PaymentProcessor(
        repository=order_repository,
        issuer=issuer,
        audit_logger=audit_logger,
        clock=clock,
    )


@pytest.fixture
def gate(download_repository, catalog, audit_logger, clock) -> DownloadGate:
    return DownloadGate(
        repository=download_repository,
        catalog=catalog,
        audit_logger=audit_logger,
        clock=clock,
    )
