"""Read-only product view consumed by the order pipeline."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogProduct(BaseModel):
    """Authoritative price and redemption target for a product."""

    id: int
    price: Decimal = Field(ge=0)
    download_target: str = Field(min_length=1)
    name: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)
