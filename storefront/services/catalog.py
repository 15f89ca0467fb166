# storefront/services/catalog.py
from abc import ABC, abstractmethod
from typing import Iterable

from sqlmodel import SQLModel

from storefront.services.seed import FIXTURE_PRODUCTS


class CatalogProduct(SQLModel):
    """The slice of a catalog product an order line snapshots."""

    product_id: str
    name: str
    price: float
    image: str | None = None
    is_active: bool = True


class ProductCatalog(ABC):
    """
    Product lookup, consulted only while a new order is being priced.
    """

    @abstractmethod
    def lookup(self, product_id: str) -> CatalogProduct | None:
        pass


class InMemoryProductCatalog(ProductCatalog):
    def __init__(self, products: Iterable[CatalogProduct] | None = None):
        if products is None:
            products = [CatalogProduct(**p) for p in FIXTURE_PRODUCTS]
        self._products = {p.product_id: p for p in products}

    def lookup(self, product_id: str) -> CatalogProduct | None:
        product = self._products.get(product_id)
        if product is None or not product.is_active:
            return None
        return product
