"""Checkout with a local fallback.

When the orders API is unreachable the shopper still gets an order: a
``LocalPendingOrder`` kept in the ``LocalOrderCache``. Nothing submits
it behind the shopper's back; ``reconcile_pending`` must be called
explicitly and uses the local id as the ``Idempotency-Key`` so a
retried submission never creates a second server order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List

import structlog

from storefront.api import ApiError, ApiUnavailable, OrdersApiClient
from storefront.cache import LocalOrderCache
from storefront.models import (
    DELIVERY_FEE,
    CheckoutRequest,
    CheckoutResult,
    LocalPendingOrder,
)

logger = structlog.get_logger(__name__)


@dataclass
class ReconciliationReport:
    reconciled: Dict[str, str] = field(default_factory=dict)
    rejected: Dict[str, str] = field(default_factory=dict)
    remaining: List[str] = field(default_factory=list)


class CheckoutService:
    def __init__(
        self,
        client: OrdersApiClient,
        cache: LocalOrderCache,
        delivery_fee: Decimal = DELIVERY_FEE,
    ) -> None:
        self._client = client
        self._cache = cache
        self._delivery_fee = delivery_fee

    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        """Place an order, falling back to a local pending order.

        Only ``ApiUnavailable`` triggers the fallback. A 4xx (bad stock,
        unverified farmer...) is raised to the caller as ``ApiError``.
        """
        try:
            order = self._client.create_order(request.api_payload())
        except ApiUnavailable as exc:
            local = LocalPendingOrder.create(request, self._delivery_fee, error=str(exc))
            self._cache.add(local)
            logger.warning(
                "checkout.saved_locally",
                local_id=local.local_id,
                total=str(local.total),
                error=str(exc),
            )
            result = CheckoutResult(
                order_id=local.local_id,
                order_number=local.local_id,
                status=local.status,
                total=local.total,
                is_local=True,
            )
        else:
            result = CheckoutResult(
                order_id=str(order["id"]),
                order_number=order["order_number"],
                status=order["status"],
                total=Decimal(str(order["total_amount"])),
                is_local=False,
                order=order,
            )
            logger.info("checkout.placed", order_id=result.order_id, order_number=result.order_number)

        self._request_confirmation(request, result)
        return result

    def _request_confirmation(self, request: CheckoutRequest, result: CheckoutResult) -> None:
        payload = {
            "order_id": result.order_id,
            "order_number": result.order_number,
            "customer_name": request.customer_name,
            "customer_email": request.customer_email,
            "product_name": request.product_name,
            "quantity": request.quantity,
            "unit": request.unit,
            "unit_price": str(request.unit_price),
            "delivery_fee": str(self._delivery_fee),
            "total_amount": str(result.total),
            "payment_method": request.payment_method,
            "delivery_address": request.delivery_address.address,
            "delivery_city": request.delivery_address.city,
            "delivery_state": request.delivery_address.state,
        }
        try:
            self._client.send_confirmation(payload)
        except (ApiUnavailable, ApiError) as exc:
            # The order stands either way.
            logger.warning(
                "checkout.confirmation_failed", order_id=result.order_id, error=str(exc)
            )

    def pending(self) -> List[LocalPendingOrder]:
        return self._cache.list()

    def reconcile_pending(self) -> ReconciliationReport:
        """Submit every locally held order, oldest first.

        Stops at the first ``ApiUnavailable``; what was not attempted is
        reported as ``remaining``. Orders the server rejects stay in the
        cache with ``last_error`` set so the shopper can decide.
        """
        report = ReconciliationReport()
        pending = sorted(self._cache.list(), key=lambda o: o.created_at)

        for index, local in enumerate(pending):
            try:
                order = self._client.create_order(
                    local.payload.api_payload(), idempotency_key=local.local_id
                )
            except ApiUnavailable as exc:
                report.remaining.extend(o.local_id for o in pending[index:])
                logger.warning(
                    "checkout.reconcile_stopped",
                    local_id=local.local_id,
                    remaining=len(report.remaining),
                    error=str(exc),
                )
                break
            except ApiError as exc:
                self._cache.update(local.model_copy(update={"last_error": str(exc)}))
                report.rejected[local.local_id] = str(exc)
                report.remaining.append(local.local_id)
                logger.warning("checkout.reconcile_rejected", local_id=local.local_id, error=str(exc))
                continue

            self._cache.remove(local.local_id)
            report.reconciled[local.local_id] = str(order["id"])
            logger.info("checkout.reconciled", local_id=local.local_id, order_id=order["id"])

        return report

    def discard(self, local_id: str) -> bool:
        removed = self._cache.remove(local_id)
        if removed:
            logger.info("checkout.discarded", local_id=local_id)
        return removed
