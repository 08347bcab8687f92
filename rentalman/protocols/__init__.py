"""
Rentalman Protocols.

Defines interfaces for the storage the engine reads from.
"""

from rentalman.protocols.ledger import (
    CommitmentRecord,
    CommitmentStore,
    CrewMember,
    EquipmentLine,
    InventoryLedger,
    ItemRecord,
    LotRecord,
    OrderRecord,
    OrderRef,
    Repository,
    SerialRecord,
)

__all__ = [
    # Protocols
    "InventoryLedger",
    "CommitmentStore",
    "Repository",
    # Records
    "ItemRecord",
    "SerialRecord",
    "LotRecord",
    "CommitmentRecord",
    "OrderRef",
    "OrderRecord",
    "EquipmentLine",
    "CrewMember",
]
