"""
Rentalman Models.

Core models for availability and scheduling:
- EquipmentItem / SerialUnit / Lot: inventory ledger (serialized vs lot stock)
- Rental: rental agreement bracketing the on-site occupation
- Employee / Vehicle: crew and transport assignable to work orders
- WorkOrder: montaje/desmontaje with crew, vehicle and equipment
- Commitment: equipment reserved by a work order over an interval
- DateChange: audit of work order rescheduling
- Alert: actionable conflict record with a resolution workflow
"""

from rentalman.models.alert import (
    Alert,
    AlertKind,
    AlertSeverity,
    AlertStatus,
    SEVERITY_SCALE,
)
from rentalman.models.inventory import (
    EquipmentItem,
    Lot,
    LotStatus,
    SerialStatus,
    SerialUnit,
    TrackingMode,
)
from rentalman.models.rental import Rental, RentalStatus
from rentalman.models.resources import Employee, Vehicle
from rentalman.models.work_order import (
    CLOSED_STATUSES,
    Commitment,
    DateChange,
    WorkOrder,
    WorkOrderStatus,
    WorkOrderType,
)

__all__ = [
    "EquipmentItem",
    "SerialUnit",
    "Lot",
    "TrackingMode",
    "SerialStatus",
    "LotStatus",
    "Rental",
    "RentalStatus",
    "Employee",
    "Vehicle",
    "WorkOrder",
    "WorkOrderStatus",
    "WorkOrderType",
    "CLOSED_STATUSES",
    "Commitment",
    "DateChange",
    "Alert",
    "AlertKind",
    "AlertSeverity",
    "AlertStatus",
    "SEVERITY_SCALE",
]
