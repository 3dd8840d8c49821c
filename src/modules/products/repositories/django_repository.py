"""Django ORM implementation of the Product repository.

Error handling follows the Null Object pattern: look-ups return ``None``
and the Service Layer decides how to translate a missing entity.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.core.repositories.errors import store_errors
from modules.products.exceptions import InsufficientStock
from modules.products.models import Product
from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class ProductDjangoRepository(IProductRepository):
    """Concrete Product repository backed by Django ORM."""

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def _queryset(self):
        return Product.objects.using(self.using).select_related("farmer")

    def get_by_id(self, id: str) -> Optional[Product]:
        """Returns ``None`` for non-existent or invalid IDs."""
        with store_errors(self.using):
            try:
                return self._queryset().filter(id=id).first()
            except (ValueError, ValidationError):
                return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Product]:
        with store_errors(self.using):
            queryset = self._queryset().all()
            if filters:
                queryset = queryset.filter(**filters)
            return list(queryset)

    def get_for_update(self, id: str) -> Optional[Product]:
        """Must be called inside ``transaction.atomic(using=...)``."""
        with store_errors(self.using):
            try:
                return (
                    self._queryset()
                    .select_for_update(of=("self",))
                    .filter(id=id)
                    .first()
                )
            except (ValueError, ValidationError):
                return None

    def reserve_stock(self, product: Product, quantity: int) -> Product:
        """Raises ``InsufficientStock`` when the locked row cannot cover it."""
        if product.stock_quantity < quantity:
            raise InsufficientStock(
                f"Product {product.name}: requested {quantity}, "
                f"available {product.stock_quantity}."
            )
        with store_errors(self.using):
            product.stock_quantity -= quantity
            product.save(using=self.using, update_fields=["stock_quantity"])
        logger.info(
            "product.stock_reserved",
            product_id=str(product.id),
            quantity=quantity,
            remaining=product.stock_quantity,
        )
        return product

    def release_stock(self, product_id: str, quantity: int) -> Optional[Product]:
        """Must be called inside ``transaction.atomic(using=...)``."""
        product = self.get_for_update(product_id)
        if not product:
            return None
        with store_errors(self.using):
            product.stock_quantity += quantity
            product.save(using=self.using, update_fields=["stock_quantity"])
        logger.info(
            "product.stock_released",
            product_id=str(product.id),
            quantity=quantity,
            restored_stock=product.stock_quantity,
        )
        return product
