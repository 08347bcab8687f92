"""
Rentalman Exceptions.

All rentalman errors are RentalError instances, so callers can catch one
type and still branch on the subclass (or on ``code``).
"""

from typing import Any


class RentalError(Exception):
    """
    Base exception for all Rentalman errors.

    Usage:
        raise RentalError('INVALID_STATUS', current='completado')

    Attributes:
        code: Error code (ITEM_NOT_FOUND, ALERT_ALREADY_PROCESSED, etc.)
        details: Additional context as keyword arguments
    """

    default_code = "RENTAL_ERROR"

    def __init__(self, code: str | None = None, **details: Any):
        self.code = code or self.default_code
        self.details = details
        message = f"{self.code}: {details}" if details else self.code
        super().__init__(message)

    def as_dict(self) -> dict:
        """Return error as dictionary for API responses."""
        return {"code": self.code, **self.details}

    def __str__(self) -> str:
        name = type(self).__name__
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{name}({self.code}: {details_str})"
        return f"{name}({self.code})"


class NotFound(RentalError):
    """Unknown item, serial unit, work order or alert. Fatal to the call."""

    default_code = "NOT_FOUND"


class AvailabilityCheckFailed(RentalError):
    """
    Data-access failure during a single availability lookup.

    The conflict detector turns it into an error-flagged finding instead
    of aborting the whole report.
    """

    default_code = "AVAILABILITY_CHECK_FAILED"


class InvalidState(RentalError):
    """Lifecycle transition not allowed from the current state."""

    default_code = "INVALID_STATE"


class InvalidValue(RentalError):
    """Malformed input (unknown severity, outcome, kind, reversed range)."""

    default_code = "INVALID_VALUE"


# Common error codes
# ITEM_NOT_FOUND: EquipmentItem does not exist
# SERIAL_NOT_FOUND: SerialUnit does not exist
# WORK_ORDER_NOT_FOUND: WorkOrder does not exist
# ALERT_NOT_FOUND: Alert does not exist
# ALERT_ALREADY_PROCESSED: Alert is not pending
# APPROVAL_REQUIRED: Date change is critical and was not forced
# INVALID_RANGE: date_from is after date_to
# INVALID_STATUS: WorkOrder is completed or cancelled
# REASON_REQUIRED: Date change without a reason
# EMPTY_FINDINGS: Alert requested for no findings
