"""
Ledger & Commitment Protocols.

Defines the read-only interface the conflict engine uses to look at
inventory and at existing commitments of equipment, crew and vehicles.
The engine never touches models directly; adapters translate storage
rows into the frozen records below.

Implementations:
    - OrmRepository: Django ORM (default)
    - InMemoryRepository: dict-backed, for development and tests
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Protocol, runtime_checkable


# ══════════════════════════════════════════════════════════════
# DATA TYPES
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ItemRecord:
    """Elemento de inventario."""

    id: int
    code: str
    name: str
    tracking: str  # "serialized" | "lot"
    quantity: int = 0  # raw on-hand, legacy fallback only


@dataclass(frozen=True)
class SerialRecord:
    """Unidad serializada."""

    id: int
    item_id: int
    serial_number: str
    status: str


@dataclass(frozen=True)
class LotRecord:
    """Lote de unidades intercambiables."""

    id: int
    item_id: int
    lot_number: str
    quantity: int
    status: str


@dataclass(frozen=True)
class CommitmentRecord:
    """Equipo comprometido por una orden activa."""

    id: int
    work_order_id: int
    rental_id: int | None
    item_id: int
    start_date: date
    end_date: date
    quantity: int = 1
    serial_id: int | None = None
    lot_id: int | None = None


@dataclass(frozen=True)
class OrderRef:
    """Referencia liviana a otra orden (para listar colisiones)."""

    id: int
    code: str
    order_type: str
    scheduled_date: date
    event_name: str = ""

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "order_type": self.order_type,
            "scheduled_date": str(self.scheduled_date),
            "event_name": self.event_name,
        }


@dataclass(frozen=True)
class EquipmentLine:
    """Requirement of an order: one serial unit, or a quantity of an item."""

    item_id: int
    item_name: str
    quantity: int = 1
    serial_id: int | None = None
    lot_id: int | None = None

    @property
    def is_serial_bound(self) -> bool:
        return self.serial_id is not None


@dataclass(frozen=True)
class CrewMember:
    id: int
    name: str


@dataclass(frozen=True)
class OrderRecord:
    """Orden de trabajo con todo lo que la validación necesita."""

    id: int
    code: str
    rental_id: int | None
    order_type: str  # "montaje" | "desmontaje"
    scheduled_date: date
    status: str
    vehicle_id: int | None = None
    vehicle_plate: str = ""
    lines: tuple[EquipmentLine, ...] = field(default_factory=tuple)
    crew: tuple[CrewMember, ...] = field(default_factory=tuple)


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════


@runtime_checkable
class InventoryLedger(Protocol):
    """Read-only view over item definitions, serial units and lots."""

    def get_equipment_item(self, item_id: int) -> ItemRecord | None:
        ...

    def list_serial_units(
        self, item_id: int, states: list[str] | None = None
    ) -> list[SerialRecord]:
        """Serial units of an item, optionally filtered by status."""
        ...

    def get_serial_unit(self, serial_id: int) -> SerialRecord | None:
        ...

    def list_lots(self, item_id: int, states: list[str] | None = None) -> list[LotRecord]:
        """Lots of an item, optionally filtered by status."""
        ...


@runtime_checkable
class CommitmentStore(Protocol):
    """Existing allocations of equipment, crew and vehicles to work orders."""

    def list_active_commitments(
        self,
        date_from: date,
        date_to: date,
        item_id: int | None = None,
        serial_id: int | None = None,
        exclude_rental_id: int | None = None,
    ) -> list[CommitmentRecord]:
        """
        Equipment commitments of active orders overlapping [date_from, date_to].

        Overlap is inclusive on both ends. Commitments belonging to
        ``exclude_rental_id`` are left out.
        """
        ...

    def list_orders_for_employee(
        self, employee_id: int, on_date: date, exclude_order_id: int | None = None
    ) -> list[OrderRef]:
        """Active orders the employee is assigned to on a date."""
        ...

    def list_orders_for_vehicle(
        self, vehicle_id: int, on_date: date, exclude_order_id: int | None = None
    ) -> list[OrderRef]:
        """Active orders using the vehicle on a date."""
        ...

    def get_work_order(self, order_id: int) -> OrderRecord | None:
        ...

    def get_paired_work_order(
        self, rental_id: int, order_type: str, exclude_cancelled: bool = True
    ) -> OrderRecord | None:
        """The order of ``order_type`` on the same rental."""
        ...


@runtime_checkable
class Repository(InventoryLedger, CommitmentStore, Protocol):
    """Everything the engine reads, in one object."""
