"""Error taxonomy shared by the order, payment and download services."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

from fastapi import HTTPException, status

if TYPE_CHECKING:  # pragma: no cover
    from .downloads.models import DownloadGrant


@dataclass(eq=False)
class MarketplaceError(Exception):
    """Base class for typed errors surfaced by the core services."""

    message: str
    code: str = "error"
    status_code: int = status.HTTP_400_BAD_REQUEST
    retryable: bool = False
    detail: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        base_detail: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base_detail.update(self.detail)
        return base_detail

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))


@dataclass(eq=False)
class ValidationError(MarketplaceError):
    code: str = "validation_error"
    status_code: int = status.HTTP_400_BAD_REQUEST


@dataclass(eq=False)
class NotFoundError(MarketplaceError):
    code: str = "not_found"
    status_code: int = status.HTTP_404_NOT_FOUND


@dataclass(eq=False)
class InvalidDownloadTokenError(NotFoundError):
    """No grant carries the presented token."""

    code: str = "invalid_download_token"


@dataclass(eq=False)
class AuthorizationError(MarketplaceError):
    code: str = "forbidden"
    status_code: int = status.HTTP_403_FORBIDDEN


@dataclass(eq=False)
class ExpiredError(MarketplaceError):
    code: str = "expired"
    status_code: int = status.HTTP_410_GONE


@dataclass(eq=False)
class ConflictError(MarketplaceError):
    """A compare-and-set lost against a concurrent writer."""

    code: str = "conflict"
    status_code: int = status.HTTP_409_CONFLICT


@dataclass(eq=False)
class StorageError(MarketplaceError):
    """Transient persistence failure. Callers may retry with backoff."""

    code: str = "storage_unavailable"
    status_code: int = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable: bool = True


@dataclass(eq=False)
class PartialIssuanceError(StorageError):
    """Entitlement issuance stopped short for some order items."""

    code: str = "partial_issuance"
    order_id: Optional[int] = None
    issued: Tuple["DownloadGrant", ...] = field(default_factory=tuple)
    failed_item_ids: Tuple[int, ...] = field(default_factory=tuple)

    @property
    def issued_item_ids(self) -> Tuple[int, ...]:
        return tuple(grant.order_item_id for grant in self.issued if grant.order_item_id is not None)

    @property
    def payload(self) -> Mapping[str, Any]:
        base_detail = dict(super().payload)
        base_detail.update(
            {
                "order_id": self.order_id,
                "issued_item_ids": list(self.issued_item_ids),
                "failed_item_ids": list(self.failed_item_ids),
            }
        )
        return base_detail


__all__ = [
    "AuthorizationError",
    "ConflictError",
    "ExpiredError",
    "InvalidDownloadTokenError",
    "MarketplaceError",
    "NotFoundError",
    "PartialIssuanceError",
    "StorageError",
    "ValidationError",
]
