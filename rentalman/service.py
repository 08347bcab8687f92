"""
Rentalman Engine - Thin facade over the services.

Availability and validation read through the configured repository;
alert lifecycle and rescheduling are model methods. This class only
wires them together and adds the locking around change_date().

Usage:
    from rentalman import engine

    engine.check_availability(carpa.pk, date(2025, 2, 10), date(2025, 2, 12))
    report = engine.validate_date_change(montaje.pk, date(2025, 3, 4))
    wo, report = engine.change_date(montaje.pk, date(2025, 3, 4), "Cliente pidió", user=ana)
"""

import logging
from datetime import date

from django.db import transaction

from rentalman.exceptions import InvalidState, InvalidValue, NotFound
from rentalman.models import Alert, AlertStatus, WorkOrder
from rentalman.results import Availability, ConflictReport
from rentalman.services.alerts import AlertRecorder
from rentalman.services.availability import AvailabilityCalculator
from rentalman.services.conflicts import ConflictDetector

logger = logging.getLogger(__name__)


class Engine:
    """
    Main API for Rentalman (thin wrapper).

    Every method is a classmethod; services are built per call so
    settings changes (and reset_repository()) are always honoured.
    """

    # ══════════════════════════════════════════════════════════════
    # AVAILABILITY
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def check_availability(cls, item_id: int, date_from: date, date_to: date | None = None) -> Availability:
        """
        Disponibilidad de un elemento en un rango (un día si date_to es None).

        Raises:
            NotFound: elemento inexistente
            InvalidValue: rango invertido
            AvailabilityCheckFailed: fallo de acceso a datos
        """
        return AvailabilityCalculator().check(item_id, date_from, date_to)

    @classmethod
    def is_serial_available(cls, serial_id: int, date_from: date, date_to: date | None = None) -> bool:
        return AvailabilityCalculator().is_serial_available(serial_id, date_from, date_to)

    @classmethod
    def check_requirements(cls, requirements: dict[int, int], date_from: date, date_to: date | None = None) -> dict:
        """Check {item_id: required} at once, e.g. before approving a quotation."""
        return AvailabilityCalculator().check_many(requirements, date_from, date_to)

    @classmethod
    def free_serials(cls, item_id: int, date_from: date, date_to: date | None = None, limit: int | None = None):
        return AvailabilityCalculator().free_serials(item_id, date_from, date_to, limit=limit)

    @classmethod
    def free_lots(cls, item_id: int, date_from: date, date_to: date | None = None) -> list[dict]:
        return AvailabilityCalculator().free_lots(item_id, date_from, date_to)

    @classmethod
    def auto_assign(cls, requirements: dict[int, int], date_from: date, date_to: date | None = None) -> dict:
        """
        Propose serial units and lot quantities for {item_id: required}.

        Shortfalls come back under "warnings"; nothing is committed.
        """
        return AvailabilityCalculator().auto_assign(requirements, date_from, date_to)

    @classmethod
    def occupancy_calendar(cls, date_from: date, date_to: date, item_ids: list[int] | None = None) -> list[dict]:
        return AvailabilityCalculator().occupancy_calendar(date_from, date_to, item_ids)

    # ══════════════════════════════════════════════════════════════
    # DATE CHANGES
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def validate_date_change(cls, order_id: int, candidate_date: date) -> ConflictReport:
        """Graded report of what moving the order would break. Never writes."""
        return ConflictDetector().validate_date_change(order_id, candidate_date)

    @classmethod
    def change_date(
        cls,
        order_id: int,
        new_date: date,
        reason: str,
        user=None,
        force: bool = False,
    ) -> tuple[WorkOrder, ConflictReport]:
        """
        Re-validate under a row lock and reschedule the order.

        A change that requires approval is refused unless ``force`` is
        set: its alerts are recorded and InvalidState("APPROVAL_REQUIRED")
        is raised with the report. Forced changes keep the approving user
        on the DateChange row.

        Returns:
            (work_order, report)
        """
        if not reason or not reason.strip():
            raise InvalidValue("REASON_REQUIRED", order_id=order_id)

        blocked_alerts = None

        with transaction.atomic():
            wo = WorkOrder.objects.select_for_update().filter(pk=order_id).first()
            if wo is None:
                raise NotFound("WORK_ORDER_NOT_FOUND", order_id=order_id)
            if not wo.is_active:
                raise InvalidState("INVALID_STATUS", order_id=order_id, status=wo.status)

            # Sequential: worker threads would not see this transaction
            report = ConflictDetector().validate_date_change(wo.pk, new_date, parallel=False)

            if report.requires_approval and not force:
                blocked_alerts = AlertRecorder().record_from_report(report, wo.pk)
            else:
                wo.reschedule(
                    new_date,
                    reason=reason,
                    user=user,
                    forced=report.requires_approval,
                    severity=report.severity,
                )

        if blocked_alerts is not None:
            logger.warning(
                f"Date change of WorkOrder {wo.code} to {new_date} requires approval",
                extra={
                    "work_order": wo.pk,
                    "new_date": str(new_date),
                    "severity": report.severity,
                    "alerts": [a.pk for a in blocked_alerts],
                },
            )
            raise InvalidState(
                "APPROVAL_REQUIRED",
                order_id=wo.pk,
                report=report.as_dict(),
                alerts=[a.pk for a in blocked_alerts],
            )

        wo.refresh_from_db()
        return wo, report

    # ══════════════════════════════════════════════════════════════
    # ALERTS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def record_alerts_from_report(cls, report: ConflictReport, order_id: int | None = None) -> list[Alert]:
        return AlertRecorder().record_from_report(report, order_id)

    @classmethod
    def resolve_alert(cls, alert_id: int, user=None, notes: str = "", outcome: str = AlertStatus.RESOLVED) -> Alert:
        """Cierra una alerta pendiente (resuelta o descartada)."""
        return AlertRecorder().resolve(alert_id, user=user, notes=notes, outcome=outcome)

    @classmethod
    def escalate_alert(cls, alert_id: int, notes: str = "") -> Alert:
        """Escala una alerta: severidad +1, hasta crítica."""
        return AlertRecorder().escalate(alert_id, notes)

    @classmethod
    def pending_alerts(cls):
        return AlertRecorder().pending()

    @classmethod
    def alerts_for_order(cls, order_id: int):
        return AlertRecorder().for_order(order_id)

    @classmethod
    def alert_summary(cls) -> dict:
        return AlertRecorder().summary()
