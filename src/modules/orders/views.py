"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.  Domain
exceptions are caught and translated into HTTP status codes; a missing
store becomes the degraded-mode 503 through ``StoreBoundViewMixin``.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.middleware import get_correlation_id
from modules.core.viewsets import StoreBoundViewMixin
from modules.notifications.tasks import deliver_confirmation_email, enqueue
from modules.orders.dtos import CreateOrderDTO, DeliveryAddressDTO
from modules.orders.exceptions import (
    ConcurrentConflict,
    FarmerNotVerified,
    InactiveProduct,
    InvalidTransition,
    OrderNotFound,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    CancelOrderSerializer,
    ConfirmationRequestSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    StatusUpdateSerializer,
)
from modules.orders.services import OrderService
from modules.products.exceptions import InsufficientStock, ProductNotFound
from modules.products.repositories.django_repository import ProductDjangoRepository
from shared.infrastructure.bus import event_bus


def _not_found() -> Response:
    return Response({"detail": "Order not found."}, status=status.HTTP_404_NOT_FOUND)


def _conflict() -> Response:
    return Response(
        {
            "detail": "The order was updated concurrently. Please retry.",
            "code": "concurrent_conflict",
        },
        status=status.HTTP_409_CONFLICT,
    )


class OrderViewSet(StoreBoundViewMixin, GenericViewSet):
    """ViewSet for Order operations.

    Administrators see every order; other users only the orders they
    placed.  Status changes are admin-only; cancellation is open to the
    owner as well.
    """

    filterset_class = OrderFilter
    search_fields = ["order_number", "customer_name", "customer_email", "product_name"]
    ordering_fields = ["created_at", "total_amount", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    serializer_class = OrderSerializer
    queryset = Order.objects.none()

    def get_permissions(self):
        if self.action == "update_status":
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_throttles(self) -> list[BaseThrottle]:
        """Throttle scopes per action."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        elif self.action == "send_confirmation":
            throttle_scope = "order_confirmation"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_service(self) -> OrderService:
        return OrderService(
            order_repository=OrderDjangoRepository(using=self.store_alias),
            product_repository=ProductDjangoRepository(using=self.store_alias),
            event_bus=event_bus,
        )

    def get_queryset(self):
        queryset = Order.objects.using(self.store_alias).all()
        if not self.request.user.is_staff:
            queryset = queryset.filter(customer=self.request.user)
        return queryset

    def _visible(self, order: Order) -> bool:
        user = self.request.user
        return user.is_staff or order.customer_id == user.pk

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/

        Supports idempotency via the ``Idempotency-Key`` header.
        Returns 200 if the key was already used, 201 for new orders.
        """
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        dto = CreateOrderDTO(
            customer_name=data["customer_name"],
            customer_email=data["customer_email"],
            customer_phone=data["customer_phone"],
            product_id=data["product_id"],
            quantity=data["quantity"],
            delivery_address=DeliveryAddressDTO(**data["delivery_address"]),
            payment_method=data["payment_method"],
            special_instructions=data["special_instructions"],
            idempotency_key=request.headers.get("Idempotency-Key") or None,
        )

        try:
            order, created = self.get_service().create_order(dto, actor=request.user)
        except ProductNotFound as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        except (InactiveProduct, FarmerNotVerified) as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except InsufficientStock as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(
            OrderSerializer(order).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/ (filterable by status, paginated)."""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = OrderListSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self.get_service().get_order(pk)
        except OrderNotFound:
            return _not_found()
        if not self._visible(order):
            return _not_found()
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Status Update (admin)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["put", "patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/orders/{pk}/status/

        ``note`` goes into the history entry and, when given, replaces
        the order's admin notes.
        """
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = serializer.validated_data["note"]

        try:
            order = self.get_service().transition(
                pk,
                serializer.validated_data["status"],
                actor=request.user,
                note=note,
                admin_note=note or None,
            )
        except OrderNotFound:
            return _not_found()
        except InvalidTransition as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except ConcurrentConflict:
            return _conflict()

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Cancel (owner or admin)
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/

        Cancels an order and releases its reserved stock.
        """
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service = self.get_service()

        try:
            order = service.get_order(pk)
            if not self._visible(order):
                return _not_found()
            order = service.cancel_order(
                pk, actor=request.user, reason=serializer.validated_data["reason"]
            )
        except OrderNotFound:
            return _not_found()
        except InvalidTransition as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        except ConcurrentConflict:
            return _conflict()

        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Best-effort confirmation email
    # ------------------------------------------------------------------

    @action(detail=False, methods=["post"], url_path="send-confirmation")
    def send_confirmation(self, request: Request) -> Response:
        """POST /api/v1/orders/send-confirmation/

        Orders known to the server already get their confirmation from
        the creation rule, so only client-side (``LOCAL-``) orders are
        queued here.  Customers may only have it sent to their own
        account email.
        """
        serializer = ConfirmationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.data

        user = request.user
        if not user.is_staff and (
            not user.email or payload["customer_email"].lower() != user.email.lower()
        ):
            return Response(
                {"detail": "Confirmations can only be sent to your account email."},
                status=status.HTTP_403_FORBIDDEN,
            )

        if OrderDjangoRepository(using=self.store_alias).get_by_id(payload["order_id"]):
            return Response(
                {"detail": "Confirmation already scheduled."},
                status=status.HTTP_202_ACCEPTED,
            )

        enqueue(deliver_confirmation_email, payload, get_correlation_id())
        return Response(
            {"detail": "Confirmation email queued."},
            status=status.HTTP_202_ACCEPTED,
        )
