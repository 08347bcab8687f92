"""
Tests for alerts (rentalman.services.alerts + Alert model lifecycle).

Verifies that:
- Finding groups map to the right alert kind and severity
- record_from_report honours ALERT_MIN_SEVERITY and kind order
- resolve is not idempotent; escalate caps at critica
- resolve and escalate decide on the stored row, not on a stale instance
- pending/summary are pure read projections
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
from django.contrib.auth import get_user_model

from rentalman.exceptions import InvalidState, InvalidValue, NotFound
from rentalman.models import (
    Alert,
    AlertKind,
    AlertSeverity,
    AlertStatus,
    Rental,
    WorkOrder,
    WorkOrderType,
)
from rentalman.results import ConflictFinding, ConflictReport, FindingKind, Severity
from rentalman.services.alerts import AlertRecorder
from rentalman.signals import alert_escalated, alert_recorded, alert_resolved

User = get_user_model()


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def work_order(db):
    rental = Rental.objects.create(
        code="ALQ-001", start_date=date(2025, 3, 1), end_date=date(2025, 3, 5)
    )
    return WorkOrder.objects.create(
        rental=rental, order_type=WorkOrderType.MONTAJE, scheduled_date=date(2025, 3, 1)
    )


@pytest.fixture
def recorder():
    return AlertRecorder()


@pytest.fixture
def user(db):
    return User.objects.create_user(username="ana", password="x")


def shortage(shortfall, item_id=1, error=False):
    return ConflictFinding(
        kind=FindingKind.EQUIPMENT,
        resource_id=item_id,
        message=f"Faltan {shortfall}",
        required=shortfall,
        shortfall=0 if error else shortfall,
        error=error,
    )


def advisory(kind, resource_id=1):
    return ConflictFinding(
        kind=kind,
        resource_id=resource_id,
        message="colisión",
        orders=[{"id": 9, "code": "OT-9", "scheduled_date": "2025-03-02"}],
    )


def make_alert(work_order, severity=AlertSeverity.MEDIUM, kind=AlertKind.OTHER, **kwargs):
    return Alert.objects.create(
        work_order=work_order, kind=kind, severity=severity, title="Alerta", **kwargs
    )


# ═══════════════════════════════════════════════════════════════════
# record()
# ═══════════════════════════════════════════════════════════════════


class TestRecord:
    @pytest.mark.parametrize(
        "shortfall,expected",
        [
            (1, AlertSeverity.MEDIUM),
            (2, AlertSeverity.MEDIUM),
            (3, AlertSeverity.HIGH),
            (5, AlertSeverity.HIGH),
            (6, AlertSeverity.CRITICAL),
        ],
    )
    def test_equipment_severity(self, recorder, work_order, shortfall, expected):
        alert = recorder.record([shortage(shortfall)], work_order.pk)

        assert alert.kind == AlertKind.AVAILABILITY_CONFLICT
        assert alert.severity == expected
        assert alert.status == AlertStatus.PENDING
        assert alert.work_order == work_order

    def test_equipment_shortfall_summed(self, recorder, work_order):
        alert = recorder.record([shortage(3, 1), shortage(3, 2)], work_order.pk)

        assert alert.severity == AlertSeverity.CRITICAL
        assert alert.data["total_shortfall"] == 6
        assert len(alert.data["findings"]) == 2

    def test_only_failed_checks_is_baja(self, recorder, work_order):
        alert = recorder.record([shortage(4, error=True)], work_order.pk)

        assert alert.severity == AlertSeverity.LOW

    def test_crew_vehicle_paired_kinds(self, recorder, work_order):
        crew = recorder.record([advisory(FindingKind.CREW)], work_order.pk)
        vehicle = recorder.record([advisory(FindingKind.VEHICLE)], work_order.pk)
        paired = recorder.record([advisory(FindingKind.PAIRED_ORDER)], work_order.pk)

        assert (crew.kind, crew.severity) == (AlertKind.CREW_CONFLICT, AlertSeverity.MEDIUM)
        assert (vehicle.kind, vehicle.severity) == (AlertKind.VEHICLE_CONFLICT, AlertSeverity.MEDIUM)
        assert (paired.kind, paired.severity) == (AlertKind.DATE_CONFLICT, AlertSeverity.HIGH)

    def test_large_crew_group_is_alta(self, recorder, work_order):
        findings = [advisory(FindingKind.CREW, i) for i in range(3)]

        alert = recorder.record(findings, work_order.pk)

        assert alert.severity == AlertSeverity.HIGH

    def test_title_mentions_order(self, recorder, work_order):
        alert = recorder.record([shortage(1)], work_order.pk)

        assert work_order.code in alert.title

    def test_without_order(self, recorder, db):
        alert = recorder.record([shortage(1)])

        assert alert.work_order is None

    def test_mixed_kinds_rejected(self, recorder, work_order):
        with pytest.raises(InvalidValue) as exc:
            recorder.record([shortage(1), advisory(FindingKind.CREW)], work_order.pk)
        assert exc.value.code == "INVALID_KIND"

    def test_empty_group_rejected(self, recorder, work_order):
        with pytest.raises(InvalidValue):
            recorder.record([], work_order.pk)

    def test_unknown_order(self, recorder, db):
        with pytest.raises(NotFound):
            recorder.record([shortage(1)], 999)

    def test_emits_signal(self, recorder, work_order):
        receiver = MagicMock()
        alert_recorded.connect(receiver)
        try:
            alert = recorder.record([shortage(1)], work_order.pk)
        finally:
            alert_recorded.disconnect(receiver)

        assert receiver.call_args.kwargs["alert"] == alert


# ═══════════════════════════════════════════════════════════════════
# record_from_report()
# ═══════════════════════════════════════════════════════════════════


def report_with(findings, severity):
    return ConflictReport(
        order_id=0,
        current_date=date(2025, 3, 1),
        candidate_date=date(2025, 3, 6),
        findings=findings,
        severity=severity,
    )


class TestRecordFromReport:
    def test_one_alert_per_kind_in_order(self, recorder, work_order):
        report = report_with(
            [
                advisory(FindingKind.PAIRED_ORDER),
                shortage(2),
                advisory(FindingKind.CREW, 1),
                advisory(FindingKind.CREW, 2),
            ],
            Severity.ALTO,
        )

        alerts = recorder.record_from_report(report, work_order.pk)

        assert [a.kind for a in alerts] == [
            AlertKind.AVAILABILITY_CONFLICT,
            AlertKind.CREW_CONFLICT,
            AlertKind.DATE_CONFLICT,
        ]
        assert len(alerts[1].data["findings"]) == 2

    def test_uses_report_order_by_default(self, recorder, work_order):
        report = report_with([shortage(6)], Severity.CRITICO)
        report.order_id = work_order.pk

        [alert] = recorder.record_from_report(report)

        assert alert.work_order == work_order

    def test_below_minimum_records_nothing(self, recorder, work_order):
        report = report_with([shortage(4, error=True)], Severity.INFO)

        assert recorder.record_from_report(report, work_order.pk) == []
        assert Alert.objects.count() == 0

    def test_ok_report_records_nothing(self, recorder, work_order):
        assert recorder.record_from_report(report_with([], Severity.OK), work_order.pk) == []

    def test_minimum_is_configurable(self, recorder, work_order, settings):
        settings.RENTALMAN = {"ALERT_MIN_SEVERITY": "critico"}
        report = report_with([shortage(4)], Severity.ALTO)

        assert recorder.record_from_report(report, work_order.pk) == []


# ═══════════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════════


class TestResolve:
    def test_resolve_pending(self, recorder, work_order, user):
        alert = make_alert(work_order)

        resolved = recorder.resolve(alert.pk, user=user, notes="Subalquilado")

        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolved_by == user
        assert resolved.resolved_at is not None
        assert resolved.resolution_notes == "Subalquilado"

    def test_resolve_is_not_idempotent(self, recorder, work_order):
        alert = make_alert(work_order)
        recorder.resolve(alert.pk)

        with pytest.raises(InvalidState) as exc:
            recorder.resolve(alert.pk)
        assert exc.value.code == "ALERT_ALREADY_PROCESSED"

    def test_discard(self, recorder, work_order):
        alert = make_alert(work_order)

        discarded = recorder.resolve(alert.pk, outcome=AlertStatus.DISCARDED)

        assert discarded.status == AlertStatus.DISCARDED

    def test_invalid_outcome(self, recorder, work_order):
        alert = make_alert(work_order)

        with pytest.raises(InvalidValue) as exc:
            recorder.resolve(alert.pk, outcome=AlertStatus.ESCALATED)
        assert exc.value.code == "INVALID_OUTCOME"

    def test_escalated_alert_cannot_be_resolved(self, recorder, work_order):
        alert = make_alert(work_order)
        recorder.escalate(alert.pk)

        with pytest.raises(InvalidState):
            recorder.resolve(alert.pk)

    def test_stale_instance_cannot_resolve_twice(self, work_order, user):
        alert = make_alert(work_order)
        first = Alert.objects.get(pk=alert.pk)
        second = Alert.objects.get(pk=alert.pk)
        first.resolve(user=user, notes="Subalquilado")

        with pytest.raises(InvalidState) as exc:
            second.resolve(outcome=AlertStatus.DISCARDED, notes="Duplicado")
        assert exc.value.code == "ALERT_ALREADY_PROCESSED"

        alert.refresh_from_db()
        assert alert.status == AlertStatus.RESOLVED
        assert alert.resolution_notes == "Subalquilado"

    def test_stale_instance_cannot_resolve_after_escalation(self, work_order):
        alert = make_alert(work_order)
        stale = Alert.objects.get(pk=alert.pk)
        Alert.objects.get(pk=alert.pk).escalate()

        with pytest.raises(InvalidState):
            stale.resolve()

        alert.refresh_from_db()
        assert alert.status == AlertStatus.ESCALATED

    def test_unknown_alert(self, recorder, db):
        with pytest.raises(NotFound) as exc:
            recorder.resolve(999)
        assert exc.value.code == "ALERT_NOT_FOUND"

    def test_emits_signal(self, recorder, work_order, user):
        alert = make_alert(work_order)
        receiver = MagicMock()
        alert_resolved.connect(receiver)
        try:
            recorder.resolve(alert.pk, user=user)
        finally:
            alert_resolved.disconnect(receiver)

        kwargs = receiver.call_args.kwargs
        assert kwargs["outcome"] == AlertStatus.RESOLVED
        assert kwargs["user"] == user


class TestEscalate:
    @pytest.mark.parametrize(
        "start,expected",
        [
            (AlertSeverity.LOW, AlertSeverity.MEDIUM),
            (AlertSeverity.MEDIUM, AlertSeverity.HIGH),
            (AlertSeverity.HIGH, AlertSeverity.CRITICAL),
            (AlertSeverity.CRITICAL, AlertSeverity.CRITICAL),
        ],
    )
    def test_one_step_up(self, recorder, work_order, start, expected):
        alert = make_alert(work_order, severity=start)

        escalated = recorder.escalate(alert.pk, "Requiere gerencia")

        assert escalated.severity == expected
        assert escalated.status == AlertStatus.ESCALATED
        assert "[ESCALADA] Requiere gerencia" in escalated.resolution_notes

    def test_escalate_again(self, recorder, work_order):
        alert = make_alert(work_order, severity=AlertSeverity.LOW)
        recorder.escalate(alert.pk)

        again = recorder.escalate(alert.pk, "Segunda vez")

        assert again.severity == AlertSeverity.HIGH
        assert again.resolution_notes.count("[ESCALADA]") == 2

    def test_resolved_alert_cannot_be_escalated(self, recorder, work_order):
        alert = make_alert(work_order)
        recorder.resolve(alert.pk)

        with pytest.raises(InvalidState):
            recorder.escalate(alert.pk)

    def test_stale_instances_each_add_one_step(self, work_order):
        alert = make_alert(work_order, severity=AlertSeverity.LOW)
        first = Alert.objects.get(pk=alert.pk)
        second = Alert.objects.get(pk=alert.pk)

        first.escalate("Primera")
        severity = second.escalate("Segunda")

        alert.refresh_from_db()
        assert severity == alert.severity == AlertSeverity.HIGH
        assert "[ESCALADA] Primera" in alert.resolution_notes
        assert "[ESCALADA] Segunda" in alert.resolution_notes

    def test_stale_instance_cannot_escalate_resolved_alert(self, work_order):
        alert = make_alert(work_order)
        stale = Alert.objects.get(pk=alert.pk)
        Alert.objects.get(pk=alert.pk).resolve()

        with pytest.raises(InvalidState):
            stale.escalate()

        alert.refresh_from_db()
        assert alert.status == AlertStatus.RESOLVED

    def test_history_is_kept(self, recorder, work_order):
        alert = make_alert(work_order, severity=AlertSeverity.LOW)
        recorder.escalate(alert.pk)

        assert alert.history.count() == 2

    def test_emits_signal(self, recorder, work_order):
        alert = make_alert(work_order, severity=AlertSeverity.HIGH)
        receiver = MagicMock()
        alert_escalated.connect(receiver)
        try:
            recorder.escalate(alert.pk)
        finally:
            alert_escalated.disconnect(receiver)

        assert receiver.call_args.kwargs["previous_severity"] == AlertSeverity.HIGH


# ═══════════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════════


class TestQueries:
    def test_pending_ordered_by_severity(self, recorder, work_order):
        low = make_alert(work_order, severity=AlertSeverity.LOW)
        critical = make_alert(work_order, severity=AlertSeverity.CRITICAL)
        medium_old = make_alert(work_order, severity=AlertSeverity.MEDIUM)
        medium_new = make_alert(work_order, severity=AlertSeverity.MEDIUM)
        done = make_alert(work_order, severity=AlertSeverity.CRITICAL)
        recorder.resolve(done.pk)

        pending = list(recorder.pending())

        assert pending == [critical, medium_new, medium_old, low]

    def test_for_order(self, recorder, work_order, db):
        mine = make_alert(work_order)
        make_alert(None)

        assert list(recorder.for_order(work_order.pk)) == [mine]

    def test_summary(self, recorder, work_order):
        make_alert(work_order, severity=AlertSeverity.CRITICAL, kind=AlertKind.AVAILABILITY_CONFLICT)
        make_alert(work_order, severity=AlertSeverity.CRITICAL, kind=AlertKind.AVAILABILITY_CONFLICT)
        make_alert(work_order, severity=AlertSeverity.MEDIUM, kind=AlertKind.CREW_CONFLICT)
        done = make_alert(work_order, severity=AlertSeverity.HIGH, kind=AlertKind.CREW_CONFLICT)
        recorder.resolve(done.pk)

        summary = recorder.summary()

        assert summary["total"] == 4
        assert summary["pending"] == 3
        assert summary["critical_pending"] == 2
        assert summary["by_severity"] == {"baja": 0, "media": 1, "alta": 0, "critica": 2}
        assert summary["by_kind"] == {"conflicto_disponibilidad": 2, "conflicto_equipo": 1}

    def test_queries_have_no_side_effects(self, recorder, work_order):
        alert = make_alert(work_order)
        before = Alert.history.count()

        list(recorder.pending())
        recorder.summary()
        list(recorder.for_order(work_order.pk))

        alert.refresh_from_db()
        assert alert.status == AlertStatus.PENDING
        assert Alert.history.count() == before


class TestDateChangeRequest:
    def test_records_cambio_fecha(self, recorder, work_order):
        alert = recorder.record_date_change_request(
            work_order.pk, date(2025, 3, 1), date(2025, 3, 3), "Lluvia"
        )

        assert alert.kind == AlertKind.DATE_CHANGE
        assert alert.severity == AlertSeverity.MEDIUM
        assert alert.data == {
            "previous_date": "2025-03-01",
            "new_date": "2025-03-03",
            "reason": "Lluvia",
        }
        assert "Lluvia" in alert.message
