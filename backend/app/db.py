"""Transaction helpers shared by the PostgreSQL repositories."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from backend.app_context import get_conn

from .exceptions import ConflictError, StorageError


logger = logging.getLogger(__name__)


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


@contextmanager
def transaction_cursor(conn: Optional[PgConnection] = None, *, operation: str) -> Iterator[PgCursor]:
    """Yield a dict cursor inside one transaction, translating driver errors.

    Every statement executed through the cursor commits or rolls back together.
    Unique-constraint violations surface as :class:`ConflictError`; any other
    driver failure (connection loss, statement timeout) as :class:`StorageError`.
    """

    try:
        with managed_connection(conn) as (connection, _managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()
    except psycopg2.IntegrityError as exc:
        raise ConflictError(f"{operation} violated a uniqueness constraint") from exc
    except psycopg2.Error as exc:
        logger.exception("Storage failure during %s", operation, extra={"db_operation": operation})
        raise StorageError(f"{operation} failed: storage unavailable") from exc


__all__ = ["managed_connection", "transaction_cursor"]
