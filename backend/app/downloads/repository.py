"""Persistence layer for download grants."""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from psycopg2.extensions import connection as PgConnection

from ..db import transaction_cursor
from .models import DownloadGrant


def _row_to_grant(row: dict) -> DownloadGrant:
    return DownloadGrant(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        product_id=int(row["product_id"]),
        order_id=row.get("order_id"),
        order_item_id=row.get("order_item_id"),
        token=row["download_token"],
        expires_at=row["expires_at"],
        download_count=int(row["download_count"]),
        created_at=row["created_at"],
    )


class PostgresDownloadRepository:
    """Concrete repository persisting download grants in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def create_grant(self, grant: DownloadGrant) -> DownloadGrant:
        with transaction_cursor(self._conn, operation="downloads.create_grant") as cursor:
            cursor.execute(
                """
                INSERT INTO downloads (
                    user_id,
                    product_id,
                    order_id,
                    order_item_id,
                    download_token,
                    expires_at,
                    download_count,
                    created_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (order_item_id) DO NOTHING
                RETURNING *
                """,
                (
                    grant.user_id,
                    grant.product_id,
                    grant.order_id,
                    grant.order_item_id,
                    grant.token,
                    grant.expires_at,
                    grant.download_count,
                    grant.created_at,
                ),
            )
            row = cursor.fetchone()
            if row is None:
                cursor.execute(
                    "SELECT * FROM downloads WHERE order_item_id = %s",
                    (grant.order_item_id,),
                )
                row = cursor.fetchone()
        return _row_to_grant(row)

    def list_for_order(self, order_id: int) -> Sequence[DownloadGrant]:
        with transaction_cursor(self._conn, operation="downloads.list_for_order") as cursor:
            cursor.execute("SELECT * FROM downloads WHERE order_id = %s ORDER BY id", (order_id,))
            return [_row_to_grant(row) for row in cursor.fetchall()]

    def find_latest_active(self, user_id: int, product_id: int, *, now: datetime) -> Optional[DownloadGrant]:
        with transaction_cursor(self._conn, operation="downloads.find_latest_active") as cursor:
            cursor.execute(
                """
                SELECT * FROM downloads
                WHERE user_id = %s AND product_id = %s AND expires_at > %s
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (user_id, product_id, now),
            )
            row = cursor.fetchone()
        return _row_to_grant(row) if row else None

    def get_by_token(self, token: str) -> Optional[DownloadGrant]:
        with transaction_cursor(self._conn, operation="downloads.get_by_token") as cursor:
            cursor.execute("SELECT * FROM downloads WHERE download_token = %s", (token,))
            row = cursor.fetchone()
        return _row_to_grant(row) if row else None

    def increment_download_count(self, token: str, *, now: datetime) -> Optional[DownloadGrant]:
        with transaction_cursor(self._conn, operation="downloads.increment") as cursor:
            cursor.execute(
                """
                UPDATE downloads
                SET download_count = download_count + 1
                WHERE download_token = %s AND expires_at > %s
                RETURNING *
                """,
                (token, now),
            )
            row = cursor.fetchone()
        return _row_to_grant(row) if row else None


__all__ = ["PostgresDownloadRepository"]
