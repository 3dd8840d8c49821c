"""Farmer DRF serializers for API input/output."""

from __future__ import annotations

from rest_framework import serializers

from modules.farmers.models import Farmer


class FarmerSerializer(serializers.ModelSerializer):
    """Read serializer for the Farmer resource."""

    class Meta:
        model = Farmer
        fields = [
            "id",
            "name",
            "email",
            "phone",
            "farm_name",
            "location",
            "is_verified",
            "verification_date",
            "rejection_reason",
            "required_documents",
            "admin_notes",
            "rejected_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class VerifyFarmerSerializer(serializers.Serializer):
    """Validates the verification decision payload."""

    is_verified = serializers.BooleanField()
    rejection_reason = serializers.CharField(
        required=False, default="", allow_blank=True
    )
    required_documents = serializers.ListField(
        child=serializers.CharField(), required=False, default=list
    )
    admin_notes = serializers.CharField(required=False, default="", allow_blank=True)


class FarmerMessageSerializer(serializers.Serializer):
    """Free-text SMS from an administrator; three SMS segments at most."""

    message = serializers.CharField(max_length=480)
