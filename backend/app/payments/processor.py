"""State machine applying external payment notifications to orders."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import uuid4

from ..audit import AuditEvent, AuditEventType, AuditLogger
from ..clock import Clock, current_time
from ..downloads import DownloadGrant, EntitlementIssuer
from ..exceptions import ConflictError, NotFoundError, PartialIssuanceError, ValidationError
from ..orders import Order, OrderRepository, OrderStatus, PaymentOutcome


logger = logging.getLogger("orders.payments")


@dataclass
class PaymentProcessor:
    """Moves orders out of ``pending`` exactly once and issues their grants.

    ``pending -> paid`` on a success notification, ``pending -> cancelled`` on
    a failure. Both states are terminal; later notifications for the same
    order are no-ops that return the stored order.
    """

    repository: OrderRepository
    issuer: EntitlementIssuer
    audit_logger: AuditLogger
    clock: Optional[Clock] = None

    def handle_callback(
        self,
        order_id: int,
        outcome: PaymentOutcome,
        *,
        transaction_id: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> Order:
        order = self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist", detail={"order_id": order_id})

        if order.status.is_terminal:
            self._log_ignored(order, outcome)
            return order

        new_status = outcome.target_status
        if new_status == OrderStatus.PAID and not transaction_id:
            transaction_id = str(uuid4())

        try:
            updated = self.repository.transition_status(
                order_id,
                expected=OrderStatus.PENDING,
                new_status=new_status,
                transaction_id=transaction_id,
                payment_method=payment_method,
                updated_at=current_time(self.clock),
            )
        except ConflictError:
            current = self.repository.get_order(order_id)
            if current is None:
                raise
            self._log_ignored(current, outcome)
            return current

        if new_status == OrderStatus.CANCELLED:
            self.audit_logger.log(
                AuditEvent(
                    event_type=AuditEventType.ORDER_CANCELLED,
                    order_id=updated.id,
                    user_id=updated.user_id,
                    metadata=_transaction_metadata(updated),
                )
            )
            return updated

        self.audit_logger.log(
            AuditEvent(
                event_type=AuditEventType.ORDER_PAID,
                order_id=updated.id,
                user_id=updated.user_id,
                metadata=_transaction_metadata(updated),
            )
        )
        self._issue(updated)
        return updated

    def retry_entitlements(self, order_id: int) -> List[DownloadGrant]:
        """Issue grants for the items of a paid order that still lack one."""

        order = self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} does not exist", detail={"order_id": order_id})
        if order.status != OrderStatus.PAID:
            raise ValidationError(
                "Only paid orders carry download grants",
                detail={"order_id": order_id, "status": order.status.value},
            )

        outstanding = self.issuer.outstanding_items(order)
        if not outstanding:
            return []
        logger.info(
            "Retrying download grant issuance order=%s items=%s",
            order.id,
            [item.id for item in outstanding],
        )
        return self._issue(order, item_ids=[item.id for item in outstanding])

    def _issue(self, order: Order, *, item_ids: Optional[List[int]] = None) -> List[DownloadGrant]:
        try:
            grants = self.issuer.issue_for_order(order, item_ids=item_ids)
        except PartialIssuanceError as exc:
            self.audit_logger.log(
                AuditEvent(
                    event_type=AuditEventType.ENTITLEMENT_ISSUANCE_FAILED,
                    order_id=order.id,
                    user_id=order.user_id,
                    metadata={
                        "issued_item_ids": ",".join(str(item_id) for item_id in exc.issued_item_ids),
                        "failed_item_ids": ",".join(str(item_id) for item_id in exc.failed_item_ids),
                    },
                )
            )
            raise

        self.audit_logger.log(
            AuditEvent(
                event_type=AuditEventType.ENTITLEMENTS_ISSUED,
                order_id=order.id,
                user_id=order.user_id,
                metadata={"grants": str(len(grants))},
            )
        )
        return grants

    def _log_ignored(self, order: Order, outcome: PaymentOutcome) -> None:
        self.audit_logger.log(
            AuditEvent(
                event_type=AuditEventType.CALLBACK_IGNORED,
                order_id=order.id,
                user_id=order.user_id,
                metadata={"status": order.status.value, "outcome": outcome.value},
            )
        )


def _transaction_metadata(order: Order) -> dict:
    metadata = {}
    if order.transaction_id:
        metadata["transaction_id"] = order.transaction_id
    if order.payment_method:
        metadata["payment_method"] = order.payment_method
    return metadata


__all__ = ["PaymentProcessor"]
