"""Application wiring for the order-to-entitlement pipeline."""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from backend.app_context import get_config

from ..audit import LoggingAuditLogger
from ..catalog import PostgresProductCatalog
from ..downloads import DownloadGate, EntitlementIssuer, PostgresDownloadRepository, token_factory
from ..orders import OrderService, PostgresOrderRepository
from ..payments import PaymentProcessor


class _Components:
    """Stores and services constructed once per process."""

    def __init__(self) -> None:
        config = get_config()
        self.order_repository = PostgresOrderRepository()
        self.download_repository = PostgresDownloadRepository()
        self.catalog = PostgresProductCatalog()
        self.audit_logger = LoggingAuditLogger()
        self.order_service = OrderService(
            repository=self.order_repository,
            catalog=self.catalog,
            audit_logger=self.audit_logger,
            default_payment_method=config.default_payment_method,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        )
        self.issuer = EntitlementIssuer(
            repository=self.download_repository,
            ttl=timedelta(days=config.download_ttl_days),
            token_factory=token_factory(config.download_token_bytes),
        )
        self.payment_processor = PaymentProcessor(
            repository=self.order_repository,
            issuer=self.issuer,
            audit_logger=self.audit_logger,
        )
        self.download_gate = DownloadGate(
            repository=self.download_repository,
            catalog=self.catalog,
            audit_logger=self.audit_logger,
        )


@lru_cache(maxsize=1)
def _components() -> _Components:
    return _Components()


def get_order_service() -> OrderService:
    return _components().order_service


def get_payment_processor() -> PaymentProcessor:
    return _components().payment_processor


def get_download_gate() -> DownloadGate:
    return _components().download_gate


__all__ = ["get_download_gate", "get_order_service", "get_payment_processor"]
