"""Django ORM implementation of the Farmer repository.

Methods return ``None`` for missing entities; the Service Layer decides
how to translate that into an API response.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError

from modules.core.repositories.errors import store_errors
from modules.farmers.models import Farmer
from modules.farmers.repositories.interfaces import IFarmerRepository

logger = structlog.get_logger(__name__)


class FarmerDjangoRepository(IFarmerRepository):
    """Concrete Farmer repository backed by Django ORM."""

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def _queryset(self):
        return Farmer.objects.using(self.using)

    def get_by_id(self, id: str) -> Optional[Farmer]:
        """Retrieve a farmer by primary key.

        Returns ``None`` for non-existent or invalid IDs (e.g. malformed UUID).
        """
        with store_errors(self.using):
            try:
                return self._queryset().filter(id=id).first()
            except (ValueError, ValidationError):
                return None

    def get_for_update(self, id: str) -> Optional[Farmer]:
        """Must be called inside ``transaction.atomic(using=...)``."""
        with store_errors(self.using):
            try:
                return self._queryset().select_for_update().filter(id=id).first()
            except (ValueError, ValidationError):
                return None

    def get_by_user(self, user_id: int) -> Optional[Farmer]:
        with store_errors(self.using):
            return self._queryset().filter(user_id=user_id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Farmer]:
        """List farmers with optional Django ORM look-ups.

        Examples of valid filters::

            {"is_verified": False}
            {"farm_name__icontains": "green"}
        """
        with store_errors(self.using):
            queryset = self._queryset().all()
            if filters:
                queryset = queryset.filter(**filters)
            return list(queryset)

    def save(self, entity: Farmer) -> Farmer:
        with store_errors(self.using):
            is_new = entity._state.adding
            entity.save(using=self.using)
        logger.info("farmer.saved", farmer_id=str(entity.id), is_new=is_new)
        return entity
