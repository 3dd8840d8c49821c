"""Notification repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, List

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.notifications.dtos import DeliveryOutcome, DeliveryRequest
    from modules.notifications.models import Notification


class INotificationRepository(IRepository["Notification"]):
    """Append-only store of delivery attempts."""

    @abstractmethod
    def append(self, request: DeliveryRequest, outcome: DeliveryOutcome) -> Notification:
        """Record one delivery attempt."""

    @abstractmethod
    def list_retryable(self, max_attempts: int, limit: int = 100) -> List[Notification]:
        """Failed attempts below ``max_attempts`` that have not been retried yet."""
