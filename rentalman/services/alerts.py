"""
Alert service -- turns conflict findings into persisted alerts.

Lifecycle transitions live on the Alert model (resolve/escalate); this
module groups findings, picks kind and severity, and looks alerts up.

    equipment     → conflicto_disponibilidad  (by shortfall)
    crew          → conflicto_equipo          (media | alta)
    vehicle       → conflicto_vehiculo        (media | alta)
    paired_order  → conflicto_fecha           (alta)
"""

from __future__ import annotations

import logging

from django.db.models import Case, Count, IntegerField, Q, Value, When

from rentalman.conf import get_setting
from rentalman.exceptions import InvalidValue, NotFound
from rentalman.models import Alert, AlertKind, AlertSeverity, AlertStatus, SEVERITY_SCALE, WorkOrder
from rentalman.results import ConflictFinding, ConflictReport, FindingKind
from rentalman.services.severity import Thresholds, severity_rank

logger = logging.getLogger(__name__)


KIND_FOR_FINDING = {
    FindingKind.EQUIPMENT: AlertKind.AVAILABILITY_CONFLICT,
    FindingKind.CREW: AlertKind.CREW_CONFLICT,
    FindingKind.VEHICLE: AlertKind.VEHICLE_CONFLICT,
    FindingKind.PAIRED_ORDER: AlertKind.DATE_CONFLICT,
}

TITLES = {
    FindingKind.EQUIPMENT: "Conflicto de disponibilidad de equipo",
    FindingKind.CREW: "Conflicto de asignación de personal",
    FindingKind.VEHICLE: "Conflicto de asignación de vehículo",
    FindingKind.PAIRED_ORDER: "Conflicto de fechas montaje/desmontaje",
}


class AlertRecorder:
    """
    Usage:
        recorder = AlertRecorder()
        alerts = recorder.record_from_report(report)
        recorder.resolve(alerts[0].pk, user=request.user, notes="Subalquilado")
    """

    def __init__(self, thresholds: Thresholds | None = None):
        self._thresholds = thresholds

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds or Thresholds.from_settings()

    # ══════════════════════════════════════════════════════════════
    # RECORDING
    # ══════════════════════════════════════════════════════════════

    def record(self, findings: list[ConflictFinding], source_order_id: int | None = None) -> Alert:
        """
        Persist one pendiente alert for a group of findings of the same kind.

        Raises:
            InvalidValue: empty group or mixed kinds
            NotFound: unknown work order
        """
        if not findings:
            raise InvalidValue("EMPTY_FINDINGS")

        kinds = {f.kind for f in findings}
        if len(kinds) != 1:
            raise InvalidValue("INVALID_KIND", kinds=sorted(kinds))
        kind = kinds.pop()
        if kind not in KIND_FOR_FINDING:
            raise InvalidValue("INVALID_KIND", kind=kind)

        work_order = None
        if source_order_id is not None:
            work_order = WorkOrder.objects.filter(pk=source_order_id).first()
            if work_order is None:
                raise NotFound("WORK_ORDER_NOT_FOUND", order_id=source_order_id)

        alert_severity = self.severity_for(kind, findings)
        alert = Alert.objects.create(
            work_order=work_order,
            kind=KIND_FOR_FINDING[kind],
            severity=alert_severity,
            title=self._title(kind, work_order),
            message="\n".join(f.message for f in findings),
            data={
                "finding_kind": kind,
                "total_shortfall": sum(f.shortfall for f in findings if not f.error),
                "findings": [f.as_dict() for f in findings],
            },
        )
        self._announce(alert)
        return alert

    def severity_for(self, kind: str, findings: list[ConflictFinding]) -> str:
        t = self.thresholds
        valid = [f for f in findings if not f.error]

        if kind == FindingKind.EQUIPMENT:
            if not valid:
                return AlertSeverity.LOW
            shortfall = sum(f.shortfall for f in valid)
            if shortfall > t.critical_shortfall:
                return AlertSeverity.CRITICAL
            if shortfall > t.high_shortfall:
                return AlertSeverity.HIGH
            return AlertSeverity.MEDIUM

        if kind == FindingKind.PAIRED_ORDER:
            return AlertSeverity.HIGH

        if len(valid) >= t.advisory_high_count:
            return AlertSeverity.HIGH
        return AlertSeverity.MEDIUM

    def record_from_report(self, report: ConflictReport, order_id: int | None = None) -> list[Alert]:
        """
        One alert per finding kind present, in kind order.

        Reports below ALERT_MIN_SEVERITY record nothing.
        """
        minimum = get_setting("ALERT_MIN_SEVERITY")
        if not report.has_findings or severity_rank(report.severity) < severity_rank(minimum):
            return []

        if order_id is None:
            order_id = report.order_id

        alerts = []
        for kind in FindingKind.ORDER:
            group = report.by_kind(kind)
            if group:
                alerts.append(self.record(group, order_id))
        return alerts

    def record_date_change_request(self, order_id: int, previous_date, new_date, reason: str = "") -> Alert:
        """Alert an operator that a date change was requested."""
        work_order = WorkOrder.objects.filter(pk=order_id).first()
        if work_order is None:
            raise NotFound("WORK_ORDER_NOT_FOUND", order_id=order_id)

        alert = Alert.objects.create(
            work_order=work_order,
            kind=AlertKind.DATE_CHANGE,
            severity=AlertSeverity.MEDIUM,
            title=f"Solicitud de cambio de fecha - {work_order.code}",
            message=f"Cambio de {previous_date} a {new_date}. Motivo: {reason or 'No especificado'}",
            data={
                "previous_date": str(previous_date),
                "new_date": str(new_date),
                "reason": reason,
            },
        )
        self._announce(alert)
        return alert

    # ══════════════════════════════════════════════════════════════
    # LIFECYCLE
    # ══════════════════════════════════════════════════════════════

    def get(self, alert_id: int) -> Alert:
        alert = Alert.objects.filter(pk=alert_id).first()
        if alert is None:
            raise NotFound("ALERT_NOT_FOUND", alert_id=alert_id)
        return alert

    def resolve(self, alert_id: int, user=None, notes: str = "", outcome: str = AlertStatus.RESOLVED) -> Alert:
        alert = self.get(alert_id)
        alert.resolve(user=user, notes=notes, outcome=outcome)
        return alert

    def escalate(self, alert_id: int, notes: str = "") -> Alert:
        alert = self.get(alert_id)
        alert.escalate(notes)
        return alert

    # ══════════════════════════════════════════════════════════════
    # QUERIES
    # ══════════════════════════════════════════════════════════════

    def pending(self):
        """Pending alerts, most severe first, newest first within a severity."""
        rank = Case(
            *[When(severity=s, then=Value(i)) for i, s in enumerate(SEVERITY_SCALE)],
            default=Value(-1),
            output_field=IntegerField(),
        )
        return (
            Alert.objects.filter(status=AlertStatus.PENDING)
            .select_related("work_order")
            .annotate(severity_rank=rank)
            .order_by("-severity_rank", "-created_at", "-pk")
        )

    def for_order(self, order_id: int):
        return Alert.objects.filter(work_order_id=order_id).order_by("-created_at", "-pk")

    def summary(self) -> dict:
        """Counts of all alerts; severity/kind breakdowns cover pending ones."""
        totals = Alert.objects.aggregate(
            total=Count("pk"),
            pending=Count("pk", filter=Q(status=AlertStatus.PENDING)),
            critical_pending=Count(
                "pk",
                filter=Q(status=AlertStatus.PENDING, severity=AlertSeverity.CRITICAL),
            ),
        )
        pending = Alert.objects.filter(status=AlertStatus.PENDING)

        by_severity = {s.value: 0 for s in SEVERITY_SCALE}
        for row in pending.values("severity").annotate(count=Count("pk")).order_by():
            by_severity[row["severity"]] = row["count"]

        by_kind = {
            row["kind"]: row["count"]
            for row in pending.values("kind").annotate(count=Count("pk")).order_by("kind")
        }

        return {**totals, "by_severity": by_severity, "by_kind": by_kind}

    # ── Internals ──

    def _title(self, kind: str, work_order) -> str:
        title = TITLES[kind]
        if work_order is not None:
            title = f"{title} - {work_order.code}"
        return title

    def _announce(self, alert: Alert) -> None:
        logger.info(
            f"Alert {alert.pk} recorded: {alert.kind} ({alert.severity})",
            extra={
                "alert": alert.pk,
                "kind": alert.kind,
                "severity": alert.severity,
                "work_order": alert.work_order_id,
            },
        )

        from rentalman.signals import alert_recorded

        alert_recorded.send(sender=self.__class__, alert=alert)
