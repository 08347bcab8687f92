"""
Rentalman Admin - Basic Django admin for inventory, work orders and alerts.
"""

from django.contrib import admin
from simple_history.admin import SimpleHistoryAdmin

from rentalman.models import (
    Alert,
    Commitment,
    DateChange,
    Employee,
    EquipmentItem,
    Lot,
    Rental,
    SerialUnit,
    Vehicle,
    WorkOrder,
)


# ── Inventory ──


class SerialUnitInline(admin.TabularInline):
    model = SerialUnit
    extra = 0
    fields = ("serial_number", "status")


class LotInline(admin.TabularInline):
    model = Lot
    extra = 0
    fields = ("lot_number", "quantity", "status")


@admin.register(EquipmentItem)
class EquipmentItemAdmin(admin.ModelAdmin):
    """Admin for rental equipment."""

    list_display = ("code", "name", "tracking", "quantity", "is_active")
    list_filter = ("tracking", "is_active")
    search_fields = ("code", "name")
    inlines = [SerialUnitInline, LotInline]
    readonly_fields = ("created_at", "updated_at")


@admin.register(SerialUnit)
class SerialUnitAdmin(admin.ModelAdmin):
    list_display = ("serial_number", "item", "status")
    list_filter = ("status",)
    search_fields = ("serial_number", "item__code", "item__name")
    raw_id_fields = ("item",)


@admin.register(Lot)
class LotAdmin(admin.ModelAdmin):
    list_display = ("lot_number", "item", "quantity", "status")
    list_filter = ("status",)
    search_fields = ("lot_number", "item__code", "item__name")
    raw_id_fields = ("item",)


# ── Rentals & resources ──


@admin.register(Rental)
class RentalAdmin(admin.ModelAdmin):
    list_display = ("code", "event_name", "start_date", "end_date", "status")
    list_filter = ("status",)
    search_fields = ("code", "event_name")
    date_hierarchy = "start_date"


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = ("last_name", "first_name", "is_active")
    list_filter = ("is_active",)
    search_fields = ("first_name", "last_name")


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ("plate", "description", "is_active")
    list_filter = ("is_active",)
    search_fields = ("plate", "description")


# ── WorkOrder ──


class CommitmentInline(admin.TabularInline):
    """Equipment reserved by the order."""

    model = Commitment
    extra = 1
    fields = ("item", "serial_unit", "lot", "quantity", "start_date", "end_date")
    raw_id_fields = ("item", "serial_unit", "lot")


class DateChangeInline(admin.TabularInline):
    model = DateChange
    extra = 0
    fields = ("previous_date", "new_date", "reason", "forced", "severity", "approved_by", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(WorkOrder)
class WorkOrderAdmin(SimpleHistoryAdmin):
    """Admin for work orders."""

    list_display = ("code", "rental", "order_type", "scheduled_date", "status", "vehicle")
    list_filter = ("status", "order_type")
    search_fields = ("code", "rental__code", "rental__event_name")
    date_hierarchy = "scheduled_date"
    raw_id_fields = ("rental", "vehicle")
    filter_horizontal = ("crew",)
    inlines = [CommitmentInline, DateChangeInline]
    readonly_fields = ("uuid", "code", "created_at", "updated_at")


# ── Alert ──


@admin.register(Alert)
class AlertAdmin(SimpleHistoryAdmin):
    """Admin for operations alerts."""

    list_display = ("title", "kind", "severity", "status", "work_order", "created_at")
    list_filter = ("status", "severity", "kind")
    search_fields = ("title", "message", "work_order__code")
    raw_id_fields = ("work_order",)
    readonly_fields = ("data", "resolved_by", "resolved_at", "created_at", "updated_at")
