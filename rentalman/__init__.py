"""
Django Rentalman - Availability & Scheduling Conflict Engine.

Decides whether rental equipment is in stock on a date and grades the
conflicts a work-order date change would cause.

Usage:
    from rentalman import engine, RentalError

    # Availability
    result = engine.check_availability(carpa.pk, date(2025, 2, 10), date(2025, 2, 12))
    print(result.total_stock, result.occupied, result.available)

    # Date change validation
    report = engine.validate_date_change(montaje.pk, date(2025, 3, 4))
    if report.requires_approval:
        alerts = engine.record_alerts_from_report(report, montaje.pk)

    # Apply (re-validates under a row lock)
    try:
        wo, report = engine.change_date(montaje.pk, date(2025, 3, 4), "Cliente pidió")
    except RentalError as e:
        print(e.as_dict())
"""

from rentalman.exceptions import RentalError


def __getattr__(name):
    """Lazy import to avoid AppRegistryNotReady errors."""
    if name in ("engine", "Engine"):
        from rentalman.service import Engine

        return Engine
    if name == "ConflictReport":
        from rentalman.results import ConflictReport

        return ConflictReport
    if name == "Availability":
        from rentalman.results import Availability

        return Availability
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["engine", "Engine", "RentalError", "ConflictReport", "Availability"]
__version__ = "0.1.0"
