"""
In-memory Repository -- dict-backed InventoryLedger + CommitmentStore.

Use this adapter for development or testing without a database, and for
exercising the parallel validation path (worker threads never touch the
ORM).

Configuration:
    RENTALMAN = {
        "REPOSITORY_BACKEND": "rentalman.adapters.memory.InMemoryRepository",
    }
"""

from __future__ import annotations

from dataclasses import replace
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

CLOSED = ("completado", "cancelado")


class InMemoryRepository:
    """
    Plain implementation of the Repository protocol.

    Records are added with the add_* helpers; ids are assigned
    sequentially when not given.
    """

    def __init__(self):
        self.items: dict[int, ItemRecord] = {}
        self.serials: dict[int, SerialRecord] = {}
        self.lots: dict[int, LotRecord] = {}
        self.commitments: dict[int, CommitmentRecord] = {}
        self.orders: dict[int, OrderRecord] = {}
        self.event_names: dict[int, str] = {}
        self._seq = 0

    def _next_id(self) -> int:
        self._seq += 1
        return self._seq

    # ── Builders ──

    def add_item(self, name: str, tracking: str = "serialized", quantity: int = 0, code: str = "") -> ItemRecord:
        pk = self._next_id()
        item = ItemRecord(id=pk, code=code or f"EQ-{pk}", name=name, tracking=tracking, quantity=quantity)
        self.items[pk] = item
        return item

    def add_serial(self, item: ItemRecord, serial_number: str = "", status: str = "available") -> SerialRecord:
        pk = self._next_id()
        unit = SerialRecord(id=pk, item_id=item.id, serial_number=serial_number or f"S-{pk}", status=status)
        self.serials[pk] = unit
        return unit

    def add_lot(self, item: ItemRecord, quantity: int, status: str = "available", lot_number: str = "") -> LotRecord:
        pk = self._next_id()
        lot = LotRecord(id=pk, item_id=item.id, lot_number=lot_number or f"L-{pk}", quantity=quantity, status=status)
        self.lots[pk] = lot
        return lot

    def add_order(
        self,
        order_type: str,
        scheduled_date: date,
        rental_id: int | None = None,
        status: str = "pendiente",
        vehicle_id: int | None = None,
        crew: tuple[CrewMember, ...] = (),
        event_name: str = "",
        code: str = "",
    ) -> OrderRecord:
        pk = self._next_id()
        order = OrderRecord(
            id=pk,
            code=code or f"OT-{pk:05d}",
            rental_id=rental_id,
            order_type=order_type,
            scheduled_date=scheduled_date,
            status=status,
            vehicle_id=vehicle_id,
            vehicle_plate=f"V-{vehicle_id}" if vehicle_id else "",
            crew=tuple(crew),
        )
        self.orders[pk] = order
        self.event_names[pk] = event_name
        return order

    def commit(
        self,
        order: OrderRecord,
        item: ItemRecord,
        start_date: date,
        end_date: date,
        quantity: int = 1,
        serial: SerialRecord | None = None,
        lot: LotRecord | None = None,
    ) -> CommitmentRecord:
        """Reserve equipment for an order and add the matching line to it."""
        pk = self._next_id()
        if serial is not None:
            quantity = 1
        record = CommitmentRecord(
            id=pk,
            work_order_id=order.id,
            rental_id=order.rental_id,
            item_id=item.id,
            start_date=start_date,
            end_date=end_date,
            quantity=quantity,
            serial_id=serial.id if serial else None,
            lot_id=lot.id if lot else None,
        )
        self.commitments[pk] = record

        line = EquipmentLine(
            item_id=item.id,
            item_name=item.name,
            quantity=quantity,
            serial_id=record.serial_id,
            lot_id=record.lot_id,
        )
        current = self.orders[order.id]
        self.orders[order.id] = replace(current, lines=current.lines + (line,))
        return record

    def set_status(self, order: OrderRecord, status: str) -> OrderRecord:
        updated = replace(self.orders[order.id], status=status)
        self.orders[order.id] = updated
        return updated

    # ── InventoryLedger ──

    def get_equipment_item(self, item_id: int) -> ItemRecord | None:
        return self.items.get(item_id)

    def list_serial_units(self, item_id: int, states: list[str] | None = None) -> list[SerialRecord]:
        return [
            s for s in self.serials.values()
            if s.item_id == item_id and (states is None or s.status in states)
        ]

    def get_serial_unit(self, serial_id: int) -> SerialRecord | None:
        return self.serials.get(serial_id)

    def list_lots(self, item_id: int, states: list[str] | None = None) -> list[LotRecord]:
        return [
            lot for lot in self.lots.values()
            if lot.item_id == item_id and (states is None or lot.status in states)
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
        result = []
        for c in self.commitments.values():
            if c.start_date > date_to or c.end_date < date_from:
                continue
            if self.orders[c.work_order_id].status in CLOSED:
                continue
            if item_id is not None and c.item_id != item_id:
                continue
            if serial_id is not None and c.serial_id != serial_id:
                continue
            if exclude_rental_id is not None and c.rental_id == exclude_rental_id:
                continue
            result.append(c)
        return result

    def list_orders_for_employee(
        self, employee_id: int, on_date: date, exclude_order_id: int | None = None
    ) -> list[OrderRef]:
        return self._orders_on(
            on_date, exclude_order_id, lambda o: any(m.id == employee_id for m in o.crew)
        )

    def list_orders_for_vehicle(
        self, vehicle_id: int, on_date: date, exclude_order_id: int | None = None
    ) -> list[OrderRef]:
        return self._orders_on(on_date, exclude_order_id, lambda o: o.vehicle_id == vehicle_id)

    def get_work_order(self, order_id: int) -> OrderRecord | None:
        return self.orders.get(order_id)

    def get_paired_work_order(
        self, rental_id: int, order_type: str, exclude_cancelled: bool = True
    ) -> OrderRecord | None:
        candidates = [
            o for o in self.orders.values()
            if o.rental_id == rental_id
            and o.order_type == order_type
            and not (exclude_cancelled and o.status == "cancelado")
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda o: (o.scheduled_date, o.id))

    def _orders_on(self, on_date, exclude_order_id, predicate) -> list[OrderRef]:
        return [
            OrderRef(
                id=o.id,
                code=o.code,
                order_type=o.order_type,
                scheduled_date=o.scheduled_date,
                event_name=self.event_names.get(o.id, ""),
            )
            for o in sorted(self.orders.values(), key=lambda o: o.id)
            if o.scheduled_date == on_date
            and o.status not in CLOSED
            and o.id != exclude_order_id
            and predicate(o)
        ]
