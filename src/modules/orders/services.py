"""Order service layer: the order state machine.

``create_order`` admits an order in ``Pending``; ``transition`` is the
only way its status moves afterwards.  The allowed moves are the data in
``VALID_TRANSITIONS``.  A transition is validated before anything is
written, recorded through the repository's versioned check-and-set, and
announced on the event bus only once it is durable.  Notification rules
live with the event handlers, never here.

Business rules enforced:
- Product must exist, be active, and belong to a verified farmer.
- Stock is reserved under a row lock at creation and released on
  cancellation, in the same transaction as the order change.
- Concurrent transitions of one order serialize through ``version``;
  a lost race is retried a bounded number of times.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.conf import settings
from django.db import IntegrityError, transaction

from modules.orders.constants import OrderStatus
from modules.orders.events import OrderCreated, OrderStatusChanged
from modules.orders.exceptions import (
    ConcurrentConflict,
    FarmerNotVerified,
    InactiveProduct,
    InvalidTransition,
    OrderNotFound,
)
from modules.products.exceptions import ProductNotFound

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and the event bus via constructor injection.
    Both repositories must be bound to the same store.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        event_bus: IEventBus,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._bus = event_bus

    @property
    def using(self) -> str:
        return self._order_repo.using

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO, actor: Any = None) -> tuple[Order, bool]:
        """Create an order in ``Pending`` with atomic stock reservation.

        Returns ``(order, created)``; ``created`` is ``False`` when the
        idempotency key was already used and the existing order is
        returned unchanged.

        Raises:
            ProductNotFound: the product does not exist.
            InactiveProduct: the product is not active.
            FarmerNotVerified: the product's farmer is not verified.
            InsufficientStock: not enough stock.
        """
        log = logger.bind(product_id=str(dto.product_id), quantity=dto.quantity)

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing, False

        try:
            order = self._place(dto, actor)
        except IntegrityError:
            # A concurrent request with the same key committed first.
            existing = (
                self._order_repo.get_by_idempotency_key(dto.idempotency_key)
                if dto.idempotency_key
                else None
            )
            if not existing:
                raise
            log.info("order.idempotency_race", order_id=str(existing.id))
            return existing, False

        log.info("order.placed", order_id=str(order.id), total=str(order.total_amount))
        return self._order_repo.get_by_id(str(order.id)) or order, True

    def _place(self, dto: CreateOrderDTO, actor: Any) -> Order:
        with transaction.atomic(using=self.using):
            product = self._product_repo.get_for_update(str(dto.product_id))
            if not product:
                raise ProductNotFound(f"Product {dto.product_id} not found.")
            if not product.is_active:
                raise InactiveProduct(f"Product {product.name} is not available.")
            if not product.farmer.is_verified:
                raise FarmerNotVerified(
                    f"Farmer {product.farmer.farm_name} is not verified."
                )

            self._product_repo.reserve_stock(product, dto.quantity)

            address = dto.delivery_address
            order = self._order_repo.create(
                {
                    "customer": actor if getattr(actor, "is_authenticated", False) else None,
                    "customer_name": dto.customer_name,
                    "customer_email": dto.customer_email,
                    "customer_phone": dto.customer_phone,
                    "delivery_address": address.address,
                    "delivery_city": address.city,
                    "delivery_state": address.state,
                    "delivery_country": address.country,
                    "farmer": product.farmer,
                    "product": product,
                    "product_name": product.name,
                    "quantity": dto.quantity,
                    "unit": product.unit,
                    "unit_price": product.price,
                    "delivery_fee": settings.ORDER_DELIVERY_FEE,
                    "payment_method": dto.payment_method,
                    "special_instructions": dto.special_instructions,
                    "idempotency_key": dto.idempotency_key,
                    "actor": actor,
                }
            )

            self._bus.publish(
                OrderCreated(
                    aggregate_id=order.id,
                    status=OrderStatus.PENDING,
                    store_alias=self.using,
                )
            )
        return order

    def transition(
        self,
        order_id: Any,
        target_status: str,
        actor: Any = None,
        note: str = "",
        admin_note: Optional[str] = None,
    ) -> Order:
        """Move an order along one edge of the state machine.

        The order is re-read on every attempt; a lost version race is
        retried up to ``ORDER_TRANSITION_MAX_RETRIES`` times.  If the
        re-read shows the edge is no longer legal (a concurrent writer
        moved the order on), ``InvalidTransition`` is raised.

        Raises:
            OrderNotFound: order does not exist.
            InvalidTransition: unknown status or illegal edge; nothing
                is written.
            ConcurrentConflict: retries exhausted.
        """
        log = logger.bind(order_id=str(order_id), target_status=target_status)

        if target_status not in OrderStatus.values:
            log.warning("order.invalid_transition", reason="unknown_status")
            raise InvalidTransition(None, target_status)

        max_retries = settings.ORDER_TRANSITION_MAX_RETRIES
        attempt = 0
        while True:
            order = self._order_repo.get_by_id(str(order_id))
            if not order:
                raise OrderNotFound(f"Order {order_id} not found.")

            old_status = order.status
            if not order.can_transition_to(target_status):
                log.warning("order.invalid_transition", current_status=old_status)
                raise InvalidTransition(old_status, target_status)

            try:
                with transaction.atomic(using=self.using):
                    updated = self._order_repo.append_status_transition(
                        order,
                        target_status,
                        note=note,
                        actor=actor,
                        admin_note=admin_note,
                    )
                    if target_status == OrderStatus.CANCELLED:
                        self._product_repo.release_stock(
                            str(order.product_id), order.quantity
                        )
                    self._bus.publish(
                        OrderStatusChanged(
                            aggregate_id=order.id,
                            old_status=old_status,
                            new_status=target_status,
                            store_alias=self.using,
                        )
                    )
            except ConcurrentConflict:
                attempt += 1
                if attempt > max_retries:
                    log.error("order.transition_conflict_exhausted", attempts=attempt)
                    raise
                log.info("order.transition_retry", attempt=attempt)
                continue

            log.info(
                "order.status_updated",
                old_status=old_status,
                version=updated.version,
            )
            return updated

    def cancel_order(self, order_id: Any, actor: Any = None, reason: str = "") -> Order:
        """Cancel an order; stock is released by ``transition``."""
        return self.transition(
            order_id,
            OrderStatus.CANCELLED,
            actor=actor,
            note=reason or "Order cancelled",
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Raises ``OrderNotFound`` if the order does not exist."""
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        return self._order_repo.list(filters)
