"""Product catalog lookups used for pricing and download targets."""
from __future__ import annotations

from decimal import Decimal
from threading import Lock
from typing import Dict, Iterable, Optional, Protocol

from psycopg2.extensions import connection as PgConnection

from ..db import transaction_cursor
from .models import CatalogProduct


class ProductCatalog(Protocol):
    """Read-only catalog collaborator."""

    def get_by_id(self, product_id: int) -> Optional[CatalogProduct]:
        ...


class PostgresProductCatalog:
    """Catalog reader backed by the ``products`` table."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    def get_by_id(self, product_id: int) -> Optional[CatalogProduct]:
        with transaction_cursor(self._conn, operation="catalog.get_by_id") as cursor:
            cursor.execute(
                "SELECT id, name, price, download_url FROM products WHERE id = %s",
                (product_id,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return CatalogProduct(
            id=int(row["id"]),
            name=row.get("name"),
            price=Decimal(str(row["price"])),
            download_target=row["download_url"],
        )


class InMemoryProductCatalog:
    """Simple in-memory catalog suitable for tests and local development."""

    def __init__(self, products: Iterable[CatalogProduct] = ()) -> None:
        self._lock = Lock()
        self._products: Dict[int, CatalogProduct] = {product.id: product for product in products}

    def add(self, product: CatalogProduct) -> None:
        with self._lock:
            self._products[product.id] = product

    def get_by_id(self, product_id: int) -> Optional[CatalogProduct]:
        with self._lock:
            return self._products.get(product_id)


__all__ = ["InMemoryProductCatalog", "PostgresProductCatalog", "ProductCatalog"]
