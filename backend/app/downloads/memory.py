"""In-memory download grant store for tests and local development."""
from __future__ import annotations

from datetime import datetime
from itertools import count
from threading import Lock
from typing import Dict, Optional, Sequence

from ..exceptions import ConflictError
from .models import DownloadGrant


class InMemoryDownloadRepository:
    """Grant store keyed by token, mirroring the unique constraints of the SQL schema."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._by_token: Dict[str, DownloadGrant] = {}
        self._by_order_item: Dict[int, str] = {}
        self._ids = count(1)

    def create_grant(self, grant: DownloadGrant) -> DownloadGrant:
        with self._lock:
            if grant.order_item_id is not None and grant.order_item_id in self._by_order_item:
                return self._by_token[self._by_order_item[grant.order_item_id]]
            if grant.token in self._by_token:
                raise ConflictError("Download token already in use")
            stored = grant.model_copy(update={"id": next(self._ids)})
            self._by_token[stored.token] = stored
            if stored.order_item_id is not None:
                self._by_order_item[stored.order_item_id] = stored.token
            return stored

    def list_for_order(self, order_id: int) -> Sequence[DownloadGrant]:
        with self._lock:
            return [grant for grant in self._by_token.values() if grant.order_id == order_id]

    def find_latest_active(self, user_id: int, product_id: int, *, now: datetime) -> Optional[DownloadGrant]:
        with self._lock:
            candidates = [
                grant
                for grant in self._by_token.values()
                if grant.user_id == user_id and grant.product_id == product_id and not grant.is_expired(now)
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda grant: (grant.created_at, grant.id or 0))

    def get_by_token(self, token: str) -> Optional[DownloadGrant]:
        with self._lock:
            return self._by_token.get(token)

    def increment_download_count(self, token: str, *, now: datetime) -> Optional[DownloadGrant]:
        with self._lock:
            grant = self._by_token.get(token)
            if grant is None or grant.is_expired(now):
                return None
            updated = grant.model_copy(update={"download_count": grant.download_count + 1})
            self._by_token[token] = updated
            return updated


__all__ = ["InMemoryDownloadRepository"]
