"""
ORM Repository.

Implements the InventoryLedger and CommitmentStore protocols on top of
rentalman's Django models.

Vocabulary mapping:
    Protocol                    →  Models
    ───────────────────────────────────────────────
    get_equipment_item()        →  EquipmentItem
    list_serial_units()         →  SerialUnit
    list_lots()                 →  Lot
    list_active_commitments()   →  Commitment (work order not closed)
    list_orders_for_employee()  →  WorkOrder.crew
    list_orders_for_vehicle()   →  WorkOrder.vehicle
    get_work_order()            →  WorkOrder + commitments + crew
"""

import logging
from datetime import date

from rentalman.protocols.ledger import (
    CommitmentRecord,
    CrewMember,
    EquipmentLine,
    ItemRecord,
    LotRecord,
    OrderRecord,
    OrderRef,
    SerialRecord,
)

logger = logging.getLogger(__name__)


class OrmRepository:
    """
    Repository backed by the Django ORM.

    Example:
        from rentalman.adapters import get_repository

        repo = get_repository()
        item = repo.get_equipment_item(42)
    """

    # ── InventoryLedger ──

    def get_equipment_item(self, item_id: int) -> ItemRecord | None:
        from rentalman.models import EquipmentItem

        item = EquipmentItem.objects.filter(pk=item_id).first()
        if item is None:
            return None
        return ItemRecord(
            id=item.pk,
            code=item.code,
            name=item.name,
            tracking=item.tracking,
            quantity=item.quantity,
        )

    def list_serial_units(self, item_id: int, states: list[str] | None = None) -> list[SerialRecord]:
        from rentalman.models import SerialUnit

        qs = SerialUnit.objects.filter(item_id=item_id)
        if states is not None:
            qs = qs.filter(status__in=states)
        return [
            SerialRecord(id=pk, item_id=item_id, serial_number=number, status=status)
            for pk, number, status in qs.values_list("pk", "serial_number", "status")
        ]

    def get_serial_unit(self, serial_id: int) -> SerialRecord | None:
        from rentalman.models import SerialUnit

        unit = SerialUnit.objects.filter(pk=serial_id).first()
        if unit is None:
            return None
        return SerialRecord(
            id=unit.pk,
            item_id=unit.item_id,
            serial_number=unit.serial_number,
            status=unit.status,
        )

    def list_lots(self, item_id: int, states: list[str] | None = None) -> list[LotRecord]:
        from rentalman.models import Lot

        qs = Lot.objects.filter(item_id=item_id)
        if states is not None:
            qs = qs.filter(status__in=states)
        return [
            LotRecord(
                id=pk, item_id=item_id, lot_number=number, quantity=quantity, status=status
            )
            for pk, number, quantity, status in qs.values_list(
                "pk", "lot_number", "quantity", "status"
            )
        ]

    # ── CommitmentStore ──

    def list_active_commitments(
        self,
        date_from: date,
        date_to: date,
        item_id: int | None = None,
        serial_id: int | None = None,
        exclude_rental_id: int | None = None,
    ) -> list[CommitmentRecord]:
        from rentalman.models import CLOSED_STATUSES, Commitment

        qs = Commitment.objects.filter(
            start_date__lte=date_to,
            end_date__gte=date_from,
        ).exclude(work_order__status__in=CLOSED_STATUSES)

        if item_id is not None:
            qs = qs.filter(item_id=item_id)
        if serial_id is not None:
            qs = qs.filter(serial_unit_id=serial_id)
        if exclude_rental_id is not None:
            qs = qs.exclude(work_order__rental_id=exclude_rental_id)

        rows = qs.values_list(
            "pk",
            "work_order_id",
            "work_order__rental_id",
            "item_id",
            "start_date",
            "end_date",
            "quantity",
            "serial_unit_id",
            "lot_id",
        )
        return [
            CommitmentRecord(
                id=pk,
                work_order_id=wo_id,
                rental_id=rental_id,
                item_id=c_item_id,
                start_date=start,
                end_date=end,
                quantity=quantity,
                serial_id=c_serial_id,
                lot_id=lot_id,
            )
            for pk, wo_id, rental_id, c_item_id, start, end, quantity, c_serial_id, lot_id in rows
        ]

    def list_orders_for_employee(
        self, employee_id: int, on_date: date, exclude_order_id: int | None = None
    ) -> list[OrderRef]:
        from rentalman.models import WorkOrder

        qs = WorkOrder.objects.filter(crew__id=employee_id)
        return self._orders_on(qs, on_date, exclude_order_id)

    def list_orders_for_vehicle(
        self, vehicle_id: int, on_date: date, exclude_order_id: int | None = None
    ) -> list[OrderRef]:
        from rentalman.models import WorkOrder

        qs = WorkOrder.objects.filter(vehicle_id=vehicle_id)
        return self._orders_on(qs, on_date, exclude_order_id)

    def get_work_order(self, order_id: int) -> OrderRecord | None:
        from rentalman.models import WorkOrder

        wo = (
            WorkOrder.objects.select_related("vehicle")
            .prefetch_related("crew", "commitments__item")
            .filter(pk=order_id)
            .first()
        )
        if wo is None:
            return None
        return self._to_record(wo)

    def get_paired_work_order(
        self, rental_id: int, order_type: str, exclude_cancelled: bool = True
    ) -> OrderRecord | None:
        from rentalman.models import WorkOrder, WorkOrderStatus

        qs = WorkOrder.objects.filter(rental_id=rental_id, order_type=order_type)
        if exclude_cancelled:
            qs = qs.exclude(status=WorkOrderStatus.CANCELLED)
        wo = qs.order_by("scheduled_date").first()
        if wo is None:
            return None
        return self._to_record(wo, with_assignments=False)

    # ── Internals ──

    def _orders_on(self, qs, on_date: date, exclude_order_id: int | None) -> list[OrderRef]:
        from rentalman.models import CLOSED_STATUSES

        qs = qs.filter(scheduled_date=on_date).exclude(status__in=CLOSED_STATUSES)
        if exclude_order_id is not None:
            qs = qs.exclude(pk=exclude_order_id)

        rows = qs.distinct().order_by("pk").values_list(
            "pk", "code", "order_type", "scheduled_date", "rental__event_name"
        )
        return [
            OrderRef(
                id=pk,
                code=code,
                order_type=order_type,
                scheduled_date=scheduled,
                event_name=event_name or "",
            )
            for pk, code, order_type, scheduled, event_name in rows
        ]

    def _to_record(self, wo, with_assignments: bool = True) -> OrderRecord:
        lines = ()
        crew = ()
        if with_assignments:
            lines = tuple(
                EquipmentLine(
                    item_id=c.item_id,
                    item_name=c.item.name,
                    quantity=c.quantity,
                    serial_id=c.serial_unit_id,
                    lot_id=c.lot_id,
                )
                for c in wo.commitments.all()
            )
            crew = tuple(CrewMember(id=e.pk, name=e.full_name) for e in wo.crew.all())

        return OrderRecord(
            id=wo.pk,
            code=wo.code,
            rental_id=wo.rental_id,
            order_type=wo.order_type,
            scheduled_date=wo.scheduled_date,
            status=wo.status,
            vehicle_id=wo.vehicle_id,
            vehicle_plate=wo.vehicle.plate if wo.vehicle_id else "",
            lines=lines,
            crew=crew,
        )
