"""
Rentalman Services.

Business logic that doesn't belong in models:
- availability: how many units of an item are free in a range
- conflicts: what breaks if a work order moves to a date
- severity: how bad a set of findings is
- alerts: findings turned into actionable alerts
"""

from rentalman.services.alerts import AlertRecorder
from rentalman.services.availability import (
    AvailabilityCalculator,
    LotResource,
    QuantifiableResource,
    RawQuantityResource,
    SerializedResource,
    resource_for,
)
from rentalman.services.conflicts import ConflictDetector
from rentalman.services.severity import Thresholds, classify, severity_rank

__all__ = [
    "AvailabilityCalculator",
    "QuantifiableResource",
    "SerializedResource",
    "LotResource",
    "RawQuantityResource",
    "resource_for",
    "ConflictDetector",
    "Thresholds",
    "classify",
    "severity_rank",
    "AlertRecorder",
]
