"""Catalog collaborator consumed by the order pipeline."""

from .models import CatalogProduct
from .repository import InMemoryProductCatalog, PostgresProductCatalog, ProductCatalog

__all__ = [
    "CatalogProduct",
    "InMemoryProductCatalog",
    "PostgresProductCatalog",
    "ProductCatalog",
]
