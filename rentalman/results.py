"""
Rentalman Result Types.

Structured, in-memory results of availability checks and date-change
validation. Nothing here is persisted; alerts are the persisted form.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any


class FindingKind:
    """Kinds of conflict findings."""

    EQUIPMENT = "equipment"
    CREW = "crew"
    VEHICLE = "vehicle"
    PAIRED_ORDER = "paired_order"

    ORDER = (EQUIPMENT, CREW, VEHICLE, PAIRED_ORDER)


class Severity:
    """Report severity, from harmless to blocking."""

    OK = "ok"
    INFO = "info"
    ADVERTENCIA = "advertencia"
    ALTO = "alto"
    CRITICO = "critico"

    ORDER = (OK, INFO, ADVERTENCIA, ALTO, CRITICO)


class StockSource:
    """Where total stock of an item came from."""

    SERIES = "series"
    LOTS = "lots"
    RAW_QUANTITY = "raw_quantity"


@dataclass(frozen=True)
class Availability:
    """Disponibilidad de un elemento en un rango de fechas."""

    item_id: int
    total_stock: int
    occupied: int
    date_from: date | None = None
    date_to: date | None = None
    source: str = StockSource.SERIES

    @property
    def available(self) -> int:
        return max(self.total_stock - self.occupied, 0)

    @property
    def uses_fallback(self) -> bool:
        """True when stock came from the item's raw quantity (legacy path)."""
        return self.source == StockSource.RAW_QUANTITY

    def as_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "total_stock": self.total_stock,
            "occupied": self.occupied,
            "available": self.available,
            "date_from": str(self.date_from) if self.date_from else None,
            "date_to": str(self.date_to) if self.date_to else None,
            "source": self.source,
            "uses_fallback": self.uses_fallback,
        }


@dataclass
class ConflictFinding:
    """
    One conflict detected for a proposed date change.

    For equipment findings required/available/shortfall are filled in;
    for crew and vehicle findings ``orders`` lists the colliding orders.
    ``error`` marks a finding produced because the check itself failed.
    """

    kind: str
    resource_id: Any
    message: str
    required: int = 0
    available: int = 0
    shortfall: int = 0
    orders: list[dict] = field(default_factory=list)
    error: bool = False
    details: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class ConflictReport:
    """
    Resultado de la validación de un cambio de fecha.

    severity/requires_approval are filled in by the severity classifier.
    """

    order_id: int
    current_date: date | None
    candidate_date: date
    findings: list[ConflictFinding] = field(default_factory=list)
    severity: str = Severity.OK
    requires_approval: bool = False

    @property
    def has_findings(self) -> bool:
        return len(self.findings) > 0

    @property
    def shortages(self) -> list[ConflictFinding]:
        """Equipment findings that are real shortages (not failed checks)."""
        return [
            f for f in self.findings if f.kind == FindingKind.EQUIPMENT and not f.error
        ]

    @property
    def advisories(self) -> list[ConflictFinding]:
        """Crew, vehicle and paired-order findings."""
        return [
            f for f in self.findings if f.kind != FindingKind.EQUIPMENT and not f.error
        ]

    @property
    def errors(self) -> list[ConflictFinding]:
        return [f for f in self.findings if f.error]

    @property
    def total_shortfall(self) -> int:
        return sum(f.shortfall for f in self.shortages)

    def by_kind(self, kind: str) -> list[ConflictFinding]:
        return [f for f in self.findings if f.kind == kind]

    def as_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "current_date": str(self.current_date) if self.current_date else None,
            "candidate_date": str(self.candidate_date),
            "severity": self.severity,
            "requires_approval": self.requires_approval,
            "total_shortfall": self.total_shortfall,
            "findings": [f.as_dict() for f in self.findings],
        }
