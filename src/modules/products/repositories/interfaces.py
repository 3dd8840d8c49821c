"""Product repository interface.

Stock reservation and release are the only writes the order lifecycle
needs; both run under a row-level lock.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(IRepository["Product"]):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Product]:
        """Retrieve a product (with its farmer) under SELECT FOR UPDATE.

        Returns ``None`` if the product does not exist.
        """

    @abstractmethod
    def reserve_stock(self, product: Product, quantity: int) -> Product:
        """Deduct ``quantity`` from a locked product's stock."""

    @abstractmethod
    def release_stock(self, product_id: str, quantity: int) -> Optional[Product]:
        """Give ``quantity`` back to the product's stock."""
