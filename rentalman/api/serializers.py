"""
Rentalman API Serializers.
"""

from rest_framework import serializers

from rentalman.models import Alert, AlertStatus, DateChange, EquipmentItem, WorkOrder


class EquipmentItemSerializer(serializers.ModelSerializer):
    """Serializer for EquipmentItem model."""

    class Meta:
        model = EquipmentItem
        fields = ["id", "code", "name", "tracking", "quantity", "is_active"]
        read_only_fields = fields


class DateChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = DateChange
        fields = [
            "id",
            "previous_date",
            "new_date",
            "reason",
            "forced",
            "severity",
            "approved_by",
            "created_at",
        ]
        read_only_fields = fields


class WorkOrderSerializer(serializers.ModelSerializer):
    """Serializer for WorkOrder model."""

    rental_code = serializers.CharField(source="rental.code", read_only=True)
    event_name = serializers.CharField(source="rental.event_name", read_only=True)
    vehicle_plate = serializers.SerializerMethodField()
    crew = serializers.PrimaryKeyRelatedField(many=True, read_only=True)
    date_changes = DateChangeSerializer(many=True, read_only=True)

    class Meta:
        model = WorkOrder
        fields = [
            "id",
            "uuid",
            "code",
            "rental",
            "rental_code",
            "event_name",
            "order_type",
            "scheduled_date",
            "status",
            "vehicle",
            "vehicle_plate",
            "crew",
            "notes",
            "date_changes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_vehicle_plate(self, obj) -> str:
        return obj.vehicle.plate if obj.vehicle_id else ""


class AlertSerializer(serializers.ModelSerializer):
    """Serializer for Alert model."""

    work_order_code = serializers.SerializerMethodField()

    class Meta:
        model = Alert
        fields = [
            "id",
            "work_order",
            "work_order_code",
            "kind",
            "severity",
            "title",
            "message",
            "data",
            "status",
            "resolved_by",
            "resolved_at",
            "resolution_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_work_order_code(self, obj) -> str | None:
        return obj.work_order.code if obj.work_order_id else None


# ══════════════════════════════════════════════════════════════
# ACTION PAYLOADS
# ══════════════════════════════════════════════════════════════


class AvailabilityQuerySerializer(serializers.Serializer):
    """?from=YYYY-MM-DD&to=YYYY-MM-DD (to defaults to from)."""

    date_from = serializers.DateField()
    date_to = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        date_to = attrs.get("date_to")
        if date_to and date_to < attrs["date_from"]:
            raise serializers.ValidationError("'from' must not be after 'to'")
        return attrs


class ValidateDateSerializer(serializers.Serializer):
    date = serializers.DateField()


class ChangeDateSerializer(serializers.Serializer):
    """Serializer for rescheduling a work order."""

    date = serializers.DateField()
    reason = serializers.CharField(max_length=2000)
    force = serializers.BooleanField(default=False)


class ResolveAlertSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    outcome = serializers.ChoiceField(
        choices=[AlertStatus.RESOLVED, AlertStatus.DISCARDED],
        default=AlertStatus.RESOLVED,
    )


class EscalateAlertSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
