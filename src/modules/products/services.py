"""Product service layer (Use Cases).

Read-only catalog: listing, lookup and snapshotting for checkout.
Persistence is delegated to the injected ``IProductRepository``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

from modules.products.dtos import ProductSnapshot
from modules.products.exceptions import ProductNotFound, ProductUnavailable

if TYPE_CHECKING:
    from modules.products.models import Product
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductService:
    """Application service for catalog use-cases.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    def list_products(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        return self._repo.list(filters)

    def get_product(self, id: Any) -> Product:
        """Raises ``ProductNotFound`` if the product does not exist."""
        product = self._repo.get_by_id(id)
        if not product:
            raise ProductNotFound(f"Product {id} not found.")
        return product

    def snapshot(self, id: Any) -> ProductSnapshot:
        """Freeze the current name/price/image of a sellable product.

        Raises:
            ProductNotFound: if the product does not exist.
            ProductUnavailable: if the product is not for sale.
        """
        product = self.get_product(id)
        if not product.available:
            logger.warning("product.unavailable", product_id=str(id))
            raise ProductUnavailable(f"Product '{product.name}' is unavailable.")
        return ProductSnapshot.from_entity(product)
