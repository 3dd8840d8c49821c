"""Farmer service layer (Use Cases).

Verification is the only write path: an administrator approves or
rejects a farmer.  The decision is published on the event bus, where
the notifications module turns it into an approval or rejection email.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import transaction
from django.utils import timezone

from modules.farmers.events import FarmerVerificationDecided
from modules.farmers.exceptions import FarmerNotFound

if TYPE_CHECKING:
    from modules.farmers.dtos import VerifyFarmerDTO
    from modules.farmers.models import Farmer
    from modules.farmers.repositories.interfaces import IFarmerRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)


class FarmerService:
    """Application service for Farmer use-cases."""

    def __init__(self, repository: IFarmerRepository, event_bus: IEventBus) -> None:
        self._repo = repository
        self._bus = event_bus

    def verify(self, farmer_id: str, dto: VerifyFarmerDTO, actor=None) -> Farmer:
        """Approve or reject a farmer.

        Approval stamps ``verification_date`` and clears any previous
        rejection details; rejection records reason, required documents,
        notes and the deciding administrator.

        Raises:
            FarmerNotFound: if the farmer does not exist.
        """
        log = logger.bind(farmer_id=str(farmer_id), is_verified=dto.is_verified)

        with transaction.atomic(using=self._repo.using):
            farmer = self._repo.get_for_update(farmer_id)
            if not farmer:
                raise FarmerNotFound(f"Farmer {farmer_id} not found.")

            now = timezone.now()
            farmer.is_verified = dto.is_verified
            if dto.is_verified:
                farmer.verification_date = now
                farmer.rejection_reason = ""
                farmer.required_documents = []
                farmer.admin_notes = dto.admin_notes
                farmer.rejected_at = None
                farmer.rejected_by = None
            else:
                farmer.verification_date = None
                farmer.rejection_reason = dto.rejection_reason
                farmer.required_documents = list(dto.required_documents)
                farmer.admin_notes = dto.admin_notes
                farmer.rejected_at = now
                farmer.rejected_by = actor if getattr(actor, "pk", None) else None
            farmer = self._repo.save(farmer)

            self._bus.publish(
                FarmerVerificationDecided(
                    aggregate_id=farmer.id,
                    is_verified=dto.is_verified,
                    store_alias=self._repo.using,
                )
            )

        log.info("farmer.verification_decided")
        return farmer

    def get_farmer(self, farmer_id: str) -> Farmer:
        """Raises ``FarmerNotFound`` if the farmer does not exist."""
        farmer = self._repo.get_by_id(farmer_id)
        if not farmer:
            raise FarmerNotFound(f"Farmer {farmer_id} not found.")
        return farmer

    def list_farmers(self, filters: Optional[Dict[str, Any]] = None) -> List[Farmer]:
        return self._repo.list(filters)
