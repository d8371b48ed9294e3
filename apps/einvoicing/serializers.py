# ===============================================================================
# E-INVOICING API SERIALIZERS 📊
# ===============================================================================

from typing import ClassVar

from rest_framework import serializers

from .models import AuditEvent


class SubmitInvoiceSerializer(serializers.Serializer):
    """
    Request body for invoice submission.

    Missing identifiers pass validation here; the service reports them as
    INVALID_REQUEST so every caller gets the same outcome shape.
    """

    organization_id = serializers.UUIDField(required=False, allow_null=True)
    invoice_id = serializers.UUIDField(required=False, allow_null=True)
    run_async = serializers.BooleanField(required=False, default=False)


class OrganizationQuerySerializer(serializers.Serializer):
    """Tenant scope required by the read endpoints"""

    organization_id = serializers.UUIDField()


class AuditEventSerializer(serializers.ModelSerializer):
    """Read-only view of a job's audit trail"""

    class Meta:
        model = AuditEvent
        fields: ClassVar = ["id", "event_type", "event_code", "event_message", "metadata", "created_at"]
        read_only_fields: ClassVar = fields
