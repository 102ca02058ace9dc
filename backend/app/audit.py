"""Audit events emitted by the order-to-entitlement pipeline."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field


logger = logging.getLogger("orders.audit")


class AuditEventType(str, Enum):
    """Audit event categories for orders and download grants."""

    ORDER_CREATED = "order_created"
    ORDER_PAID = "order_paid"
    ORDER_CANCELLED = "order_cancelled"
    CALLBACK_IGNORED = "callback_ignored"
    ENTITLEMENTS_ISSUED = "entitlements_issued"
    ENTITLEMENT_ISSUANCE_FAILED = "entitlement_issuance_failed"
    DOWNLOAD_REDEEMED = "download_redeemed"


class AuditEvent(BaseModel):
    """Structured audit record; the order row itself is never deleted."""

    event_type: AuditEventType
    order_id: Optional[int] = None
    user_id: Optional[int] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AuditLogger(Protocol):
    """Captures structured audit events."""

    def log(self, event: AuditEvent) -> None:
        ...


class LoggingAuditLogger(AuditLogger):
    """Forwards audit events to the application logger."""

    def log(self, event: AuditEvent) -> None:
        level = logging.WARNING if event.event_type == AuditEventType.ENTITLEMENT_ISSUANCE_FAILED else logging.INFO
        logger.log(
            level,
            "Order audit %s order=%s user=%s metadata=%s",
            event.event_type.value,
            event.order_id,
            event.user_id,
            event.metadata,
            extra={"audit_event": event.event_type.value, "order_id": event.order_id},
        )


__all__ = ["AuditEvent", "AuditEventType", "AuditLogger", "LoggingAuditLogger"]
