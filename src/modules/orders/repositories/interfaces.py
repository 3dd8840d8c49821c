"""Order repository interface.

The Order Record is append-mostly: creation writes the order with its
first history entry, every later change is a versioned status transition
plus one history entry, and delivery attempts append notification rows.
The Service Layer depends exclusively on this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.notifications.models import Notification
    from modules.orders.models import Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order and its ``Pending`` history entry atomically."""

    @abstractmethod
    def append_status_transition(
        self,
        order: Order,
        new_status: str,
        note: str = "",
        actor: Any = None,
        admin_note: Optional[str] = None,
    ) -> Order:
        """Move ``order`` to ``new_status`` if its version is still current.

        Applies the status change, the version bump and the history entry
        together or not at all.  Raises ``ConcurrentConflict`` when another
        writer got there first.
        """

    @abstractmethod
    def append_notification(self, order_id: Any, fields: Dict[str, Any]) -> Notification:
        """Append one notification record to the order's log."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""
