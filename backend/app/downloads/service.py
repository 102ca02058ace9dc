"""Issuance and redemption of download grants."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Protocol, Sequence

from ..audit import AuditEvent, AuditEventType, AuditLogger
from ..catalog import CatalogProduct, ProductCatalog
from ..clock import Clock, current_time
from ..exceptions import (
    ConflictError,
    ExpiredError,
    InvalidDownloadTokenError,
    NotFoundError,
    PartialIssuanceError,
    StorageError,
    ValidationError,
)
from ..orders.models import Order, OrderItem, OrderStatus
from .models import DownloadAccess, DownloadGrant, Redemption
from .tokens import TokenFactory, generate_download_token


logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_TTL = timedelta(days=7)


class DownloadRepository(Protocol):
    """Persistence operations for download grants."""

    def create_grant(self, grant: DownloadGrant) -> DownloadGrant:
        """Persist ``grant``; returns the existing grant if its order item already has one."""

    def list_for_order(self, order_id: int) -> Sequence[DownloadGrant]:
        ...

    def find_latest_active(self, user_id: int, product_id: int, *, now: datetime) -> Optional[DownloadGrant]:
        ...

    def get_by_token(self, token: str) -> Optional[DownloadGrant]:
        ...

    def increment_download_count(self, token: str, *, now: datetime) -> Optional[DownloadGrant]:
        """Atomically bump the counter of an unexpired grant; ``None`` when no such grant."""


@dataclass
class EntitlementIssuer:
    """Turns the items of a paid order into one download grant each."""

    repository: DownloadRepository
    clock: Optional[Clock] = None
    ttl: timedelta = DEFAULT_DOWNLOAD_TTL
    token_factory: TokenFactory = generate_download_token

    def issue_for_order(
        self,
        order: Order,
        *,
        item_ids: Optional[Iterable[int]] = None,
    ) -> List[DownloadGrant]:
        """Issue grants for ``order`` (optionally only the given item ids).

        Items are issued independently. When some fail, the grants that were
        written are kept and :class:`PartialIssuanceError` names the failed
        item ids so a retry only covers those.
        """

        if order.status != OrderStatus.PAID:
            raise ValidationError(
                "Download grants are only issued for paid orders",
                detail={"order_id": order.id, "status": order.status.value},
            )

        items: Sequence[OrderItem] = order.items
        if item_ids is not None:
            wanted = set(item_ids)
            items = [item for item in order.items if item.id in wanted]

        issued_at = current_time(self.clock)
        expires_at = issued_at + self.ttl
        issued: List[DownloadGrant] = []
        failed: List[int] = []

        for item in items:
            grant = DownloadGrant(
                user_id=order.user_id,
                product_id=item.product_id,
                order_id=order.id,
                order_item_id=item.id,
                token=self.token_factory(),
                expires_at=expires_at,
                download_count=0,
                created_at=issued_at,
            )
            try:
                issued.append(self.repository.create_grant(grant))
            except (StorageError, ConflictError):
                logger.warning(
                    "Download grant issuance failed order=%s item=%s product=%s",
                    order.id,
                    item.id,
                    item.product_id,
                )
                failed.append(item.id)

        if failed:
            raise PartialIssuanceError(
                f"Issued {len(issued)} of {len(items)} download grants for order {order.id}",
                order_id=order.id,
                issued=tuple(issued),
                failed_item_ids=tuple(failed),
            )
        return issued

    def outstanding_items(self, order: Order) -> List[OrderItem]:
        """Items of ``order`` that do not have a grant yet."""

        granted = {grant.order_item_id for grant in self.repository.list_for_order(order.id)}
        return [item for item in order.items if item.id not in granted]


@dataclass
class DownloadGate:
    """Validates capability tokens and records each redemption."""

    repository: DownloadRepository
    catalog: ProductCatalog
    audit_logger: AuditLogger
    clock: Optional[Clock] = None

    def resolve_by_owner_and_product(self, user_id: int, product_id: int) -> DownloadAccess:
        now = current_time(self.clock)
        grant = self.repository.find_latest_active(user_id, product_id, now=now)
        if grant is None:
            raise NotFoundError(
                "No active download grant for this product; purchase it first",
                detail={"product_id": product_id},
            )
        product = self._product_for(grant)
        return DownloadAccess(
            product_id=grant.product_id,
            redemption_target=product.download_target,
            token=grant.token,
            expires_at=grant.expires_at,
            download_count=grant.download_count,
        )

    def redeem(self, token: str) -> Redemption:
        if not token:
            raise InvalidDownloadTokenError("Invalid download token")

        now = current_time(self.clock)
        grant = self.repository.get_by_token(token)
        if grant is None:
            raise InvalidDownloadTokenError("Invalid download token")
        if grant.is_expired(now):
            raise ExpiredError("Download grant has expired", detail={"product_id": grant.product_id})

        product = self._product_for(grant)
        updated = self.repository.increment_download_count(token, now=now)
        if updated is None:
            raise ExpiredError("Download grant has expired", detail={"product_id": grant.product_id})

        self.audit_logger.log(
            AuditEvent(
                event_type=AuditEventType.DOWNLOAD_REDEEMED,
                order_id=updated.order_id,
                user_id=updated.user_id,
                metadata={
                    "product_id": str(updated.product_id),
                    "download_count": str(updated.download_count),
                },
            )
        )
        return Redemption(target=product.download_target, grant=updated)

    def _product_for(self, grant: DownloadGrant) -> CatalogProduct:
        product = self.catalog.get_by_id(grant.product_id)
        if product is None:
            raise NotFoundError(
                f"Product {grant.product_id} is no longer available",
                detail={"product_id": grant.product_id},
            )
        return product


__all__ = ["DEFAULT_DOWNLOAD_TTL", "DownloadGate", "DownloadRepository", "EntitlementIssuer"]
