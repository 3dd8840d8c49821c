"""Django ORM implementation of the Order repository.

Bound to one database alias (the store handed out by the persistence
gateway).  Status transitions use optimistic concurrency: a single
``UPDATE ... WHERE id = ? AND version = ?`` decides the winner, and the
history row for the new version is written in the same transaction, so
a transition is never partially applied.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from modules.core.repositories.errors import store_errors
from modules.notifications.models import Notification
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import ConcurrentConflict, OrderNotFound
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def _queryset(self):
        return (
            Order.objects.using(self.using)
            .select_related("farmer", "product")
            .prefetch_related("status_history__updated_by", "notifications")
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order plus its sequence-0 history entry.

        ``data`` holds the Order field values (snapshots included) and
        optionally ``actor`` and ``note`` for the creation entry.
        """
        data = dict(data)
        actor = data.pop("actor", None)
        note = data.pop("note", "Order placed")

        with store_errors(self.using), transaction.atomic(using=self.using):
            order = Order(status=OrderStatus.PENDING, version=0, **data)
            order.save(using=self.using)
            OrderStatusHistory.objects.using(self.using).create(
                order=order,
                sequence=0,
                old_status=None,
                status=OrderStatus.PENDING,
                note=note,
                updated_by=_user_or_none(actor),
            )

        logger.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
        )
        return order

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def append_status_transition(
        self,
        order: Order,
        new_status: str,
        note: str = "",
        actor: Any = None,
        admin_note: Optional[str] = None,
    ) -> Order:
        expected_version = order.version
        log = logger.bind(
            order_id=str(order.id),
            old_status=order.status,
            new_status=new_status,
            version=expected_version,
        )

        changes: Dict[str, Any] = {
            "status": new_status,
            "version": F("version") + 1,
            "updated_at": timezone.now(),
        }
        if admin_note:
            changes["admin_notes"] = admin_note

        with store_errors(self.using):
            try:
                with transaction.atomic(using=self.using):
                    updated = (
                        Order.objects.using(self.using)
                        .filter(id=order.id, version=expected_version)
                        .update(**changes)
                    )
                    if updated == 0:
                        raise ConcurrentConflict(
                            f"Order {order.id} changed since version {expected_version}."
                        )
                    OrderStatusHistory.objects.using(self.using).create(
                        order_id=order.id,
                        sequence=expected_version + 1,
                        old_status=order.status,
                        status=new_status,
                        note=note,
                        updated_by=_user_or_none(actor),
                    )
            except IntegrityError as exc:
                log.warning("order.transition_conflict", reason="sequence_taken")
                raise ConcurrentConflict(
                    f"Order {order.id} history already has version {expected_version + 1}."
                ) from exc
            except ConcurrentConflict:
                log.warning("order.transition_conflict", reason="stale_version")
                raise

        log.info("order.status_transition_recorded")
        return self.get_by_id(str(order.id))

    # ------------------------------------------------------------------
    # Notification log
    # ------------------------------------------------------------------

    def append_notification(self, order_id: Any, fields: Dict[str, Any]) -> Notification:
        """Append under the order row lock so ``sent_at`` never goes backwards."""
        with store_errors(self.using), transaction.atomic(using=self.using):
            locked = (
                Order.objects.using(self.using)
                .select_for_update()
                .filter(id=order_id)
                .values_list("id", flat=True)
                .first()
            )
            if locked is None:
                raise OrderNotFound(f"Order {order_id} not found.")

            latest = (
                Notification.objects.using(self.using)
                .filter(order_id=order_id)
                .order_by("-sent_at")
                .values_list("sent_at", flat=True)
                .first()
            )
            fields = dict(fields)
            sent_at = fields.get("sent_at") or timezone.now()
            if latest is not None and sent_at < latest:
                sent_at = latest
            fields["sent_at"] = sent_at

            return Notification.objects.using(self.using).create(
                order_id=order_id, **fields
            )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with history and notifications prefetched.

        Returns ``None`` for non-existent or invalid IDs.
        """
        with store_errors(self.using):
            try:
                return self._queryset().filter(id=id).first()
            except (ValueError, ValidationError):
                return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters.

        Supported filter keys include ``status``, ``customer_id`` and
        ``farmer_id``.
        """
        with store_errors(self.using):
            queryset = self._queryset()
            if filters:
                queryset = queryset.filter(**filters)
            return list(queryset)

    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        with store_errors(self.using):
            return self._queryset().filter(idempotency_key=key).first()


def _user_or_none(actor: Any) -> Any:
    if actor is not None and getattr(actor, "is_authenticated", False):
        return actor
    return None
