"""Farmer API views.

Listing and detail for authenticated users; verification decisions and
ad-hoc SMS messages for administrators only.  Domain exceptions are
caught and translated into HTTP status codes.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.middleware import get_correlation_id
from modules.core.viewsets import StoreBoundViewMixin
from modules.farmers.dtos import VerifyFarmerDTO
from modules.farmers.exceptions import FarmerNotFound
from modules.farmers.filters import FarmerFilter
from modules.farmers.models import Farmer
from modules.farmers.repositories.django_repository import FarmerDjangoRepository
from modules.farmers.serializers import (
    FarmerMessageSerializer,
    FarmerSerializer,
    VerifyFarmerSerializer,
)
from modules.farmers.services import FarmerService
from modules.notifications.models import Outcome
from modules.notifications.tasks import deliver_farmer_message
from shared.infrastructure.bus import event_bus


class FarmerViewSet(StoreBoundViewMixin, GenericViewSet):
    """ViewSet for farmer listing and verification.

    All ORM access goes through ``FarmerService`` and
    ``FarmerDjangoRepository`` bound to the gateway's store.
    """

    filterset_class = FarmerFilter
    search_fields = ["name", "farm_name", "email"]
    ordering_fields = ["created_at", "name", "farm_name"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    serializer_class = FarmerSerializer
    queryset = Farmer.objects.none()

    def get_permissions(self):
        if self.action in ("verify", "sms"):
            return [IsAdminUser()]
        return [IsAuthenticated()]

    def get_service(self) -> FarmerService:
        return FarmerService(
            repository=FarmerDjangoRepository(using=self.store_alias),
            event_bus=event_bus,
        )

    def get_queryset(self):
        return Farmer.objects.using(self.store_alias).all()

    def list(self, request: Request) -> Response:
        """GET /api/v1/farmers/"""
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        serializer = FarmerSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/farmers/{pk}/"""
        try:
            farmer = self.get_service().get_farmer(pk)
        except FarmerNotFound:
            return Response(
                {"detail": "Farmer not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(FarmerSerializer(farmer).data)

    @action(detail=True, methods=["put"])
    def verify(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/farmers/{pk}/verify/

        Approve (``is_verified: true``) or reject a farmer.  The farmer
        receives an approval or rejection email after commit.
        """
        serializer = VerifyFarmerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dto = VerifyFarmerDTO(**serializer.validated_data)

        try:
            farmer = self.get_service().verify(pk, dto, actor=request.user)
        except FarmerNotFound:
            return Response(
                {"detail": "Farmer not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        message = "Farmer verified." if farmer.is_verified else "Farmer rejected."
        return Response({"detail": message, "farmer": FarmerSerializer(farmer).data})

    @action(detail=True, methods=["post"])
    def sms(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/farmers/{pk}/sms/

        Send a free-text SMS to the farmer's phone.  The attempt is
        recorded against the farmer whatever the provider does; the
        response carries the recorded outcome.
        """
        serializer = FarmerMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            farmer = self.get_service().get_farmer(pk)
        except FarmerNotFound:
            return Response(
                {"detail": "Farmer not found."},
                status=status.HTTP_404_NOT_FOUND,
            )

        outcome = deliver_farmer_message(
            str(farmer.id),
            serializer.validated_data["message"],
            self.store_alias,
            get_correlation_id(),
        )
        details = {
            Outcome.SENT.value: "SMS sent.",
            Outcome.SKIPPED.value: "SMS not sent: no SMS provider or phone number.",
            Outcome.FAILED.value: "SMS delivery failed.",
        }
        return Response(
            {"detail": details[outcome["outcome"]], "notification": outcome}
        )
