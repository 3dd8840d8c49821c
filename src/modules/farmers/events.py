"""Domain events for the Farmers bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class FarmerVerificationDecided(DomainEvent):
    """Raised when an administrator approves or rejects a farmer."""

    is_verified: bool = False
