"""Domain models for download grants."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DownloadGrant(BaseModel):
    """Capability granting download access to one product until ``expires_at``."""

    id: Optional[int] = None
    user_id: int
    product_id: int
    order_id: Optional[int] = None
    order_item_id: Optional[int] = None
    token: str = Field(min_length=1)
    expires_at: datetime
    download_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def is_expired(self, now: datetime) -> bool:
        """A grant is usable strictly before its expiry instant."""

        return now >= self.expires_at


class DownloadAccess(BaseModel):
    """Answer to "do I still have access" for a user and product."""

    product_id: int
    redemption_target: str
    token: str
    expires_at: datetime
    download_count: int = 0

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Redemption(BaseModel):
    """Result of a successful token redemption."""

    target: str
    grant: DownloadGrant

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = ["DownloadAccess", "DownloadGrant", "Redemption"]
