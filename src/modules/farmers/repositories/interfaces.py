"""Farmer repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.farmers.models import Farmer


class IFarmerRepository(IRepository["Farmer"]):
    """Repository contract for the Farmer aggregate."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Farmer]:
        """Retrieve a farmer with a row-level lock (SELECT FOR UPDATE)."""

    @abstractmethod
    def get_by_user(self, user_id: int) -> Optional[Farmer]:
        """Retrieve the farmer profile linked to an auth user."""

    @abstractmethod
    def save(self, entity: Farmer) -> Farmer:
        """Persist (create or update) a farmer."""
