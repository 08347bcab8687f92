"""
Tests for the conflict detector (rentalman.services.conflicts).

Verifies that:
- Equipment, crew, vehicle and paired-order findings are produced
- The order's own rental never conflicts with itself
- A failing line or sub-check degrades to an error finding
- Parallel mode matches sequential mode and tolerates timeouts
- Only an unknown order aborts validation
"""

import threading
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from rentalman.adapters.memory import InMemoryRepository
from rentalman.adapters.orm import OrmRepository
from rentalman.exceptions import NotFound
from rentalman.models import (
    Commitment,
    Employee,
    EquipmentItem,
    Lot,
    Rental,
    TrackingMode,
    Vehicle,
    WorkOrder,
    WorkOrderType,
)
from rentalman.protocols.ledger import CrewMember
from rentalman.results import FindingKind, Severity
from rentalman.services.conflicts import ConflictDetector
from rentalman.signals import date_change_validated


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def detector(repo):
    return ConflictDetector(repo)


@pytest.fixture
def chairs(repo):
    item = repo.add_item("Silla Rimax", tracking="lot")
    repo.add_lot(item, 150)
    return item


@pytest.fixture
def tent(repo):
    item = repo.add_item("Carpa 6x6", tracking="serialized")
    return item, [repo.add_serial(item) for _ in range(3)]


@pytest.fixture
def ana():
    return CrewMember(id=501, name="Ana Pérez")


@pytest.fixture
def montaje(repo):
    return repo.add_order("montaje", date(2025, 3, 1), rental_id=10, code="OT-MON")


@pytest.fixture
def desmontaje(repo):
    return repo.add_order("desmontaje", date(2025, 3, 5), rental_id=10, code="OT-DES")


# ═══════════════════════════════════════════════════════════════════
# Basics
# ═══════════════════════════════════════════════════════════════════


class TestBasics:
    def test_clean_change_is_ok(self, detector, montaje):
        report = detector.validate_date_change(montaje.id, date(2025, 3, 2))

        assert report.findings == []
        assert report.severity == Severity.OK
        assert report.requires_approval is False
        assert report.current_date == date(2025, 3, 1)
        assert report.candidate_date == date(2025, 3, 2)

    def test_unknown_order_aborts(self, detector):
        with pytest.raises(NotFound) as exc:
            detector.validate_date_change(999, date(2025, 3, 2))
        assert exc.value.code == "WORK_ORDER_NOT_FOUND"

    def test_emits_signal(self, detector, montaje):
        receiver = MagicMock()
        date_change_validated.connect(receiver)
        try:
            report = detector.validate_date_change(montaje.id, date(2025, 3, 2))
        finally:
            date_change_validated.disconnect(receiver)

        receiver.assert_called_once()
        assert receiver.call_args.kwargs["report"] is report

    def test_validation_never_writes(self, repo, detector, montaje, chairs):
        repo.commit(montaje, chairs, date(2025, 3, 1), date(2025, 3, 5), quantity=10)
        before = (dict(repo.commitments), dict(repo.orders))

        detector.validate_date_change(montaje.id, date(2025, 3, 3))

        assert (repo.commitments, repo.orders) == before


# ═══════════════════════════════════════════════════════════════════
# Paired order
# ═══════════════════════════════════════════════════════════════════


class TestPairedOrder:
    def test_montaje_after_desmontaje(self, detector, montaje, desmontaje):
        report = detector.validate_date_change(montaje.id, date(2025, 3, 6))

        [finding] = report.by_kind(FindingKind.PAIRED_ORDER)
        assert finding.resource_id == desmontaje.id
        assert finding.orders[0]["code"] == "OT-DES"
        assert report.severity == Severity.ADVERTENCIA

    def test_montaje_before_desmontaje(self, detector, montaje, desmontaje):
        report = detector.validate_date_change(montaje.id, date(2025, 3, 4))

        assert report.by_kind(FindingKind.PAIRED_ORDER) == []

    def test_same_day_is_allowed(self, detector, montaje, desmontaje):
        report = detector.validate_date_change(montaje.id, date(2025, 3, 5))

        assert report.by_kind(FindingKind.PAIRED_ORDER) == []

    def test_desmontaje_before_montaje(self, detector, montaje, desmontaje):
        report = detector.validate_date_change(desmontaje.id, date(2025, 2, 28))

        [finding] = report.by_kind(FindingKind.PAIRED_ORDER)
        assert finding.resource_id == montaje.id

    def test_cancelled_pair_is_ignored(self, repo, detector, montaje, desmontaje):
        repo.set_status(desmontaje, "cancelado")

        report = detector.validate_date_change(montaje.id, date(2025, 3, 6))

        assert report.by_kind(FindingKind.PAIRED_ORDER) == []

    def test_no_pair(self, detector, montaje):
        report = detector.validate_date_change(montaje.id, date(2025, 3, 30))

        assert report.findings == []


# ═══════════════════════════════════════════════════════════════════
# Crew & vehicle
# ═══════════════════════════════════════════════════════════════════


class TestCrewAndVehicle:
    def test_crew_collision(self, repo, detector, ana):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1, crew=(ana,))
        other = repo.add_order(
            "desmontaje", date(2025, 3, 2), rental_id=2, crew=(ana,), event_name="Feria"
        )

        report = detector.validate_date_change(order.id, date(2025, 3, 2))

        [finding] = report.by_kind(FindingKind.CREW)
        assert finding.resource_id == ana.id
        assert finding.orders == [
            {
                "id": other.id,
                "code": other.code,
                "order_type": "desmontaje",
                "scheduled_date": "2025-03-02",
                "event_name": "Feria",
            }
        ]
        assert report.severity == Severity.ADVERTENCIA

    def test_crew_collision_with_closed_order_is_ignored(self, repo, detector, ana):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1, crew=(ana,))
        repo.add_order("montaje", date(2025, 3, 2), rental_id=2, crew=(ana,), status="completado")

        report = detector.validate_date_change(order.id, date(2025, 3, 2))

        assert report.by_kind(FindingKind.CREW) == []

    def test_order_does_not_collide_with_itself(self, repo, detector, ana):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1, crew=(ana,), vehicle_id=7)

        report = detector.validate_date_change(order.id, date(2025, 3, 1))

        assert report.findings == []

    def test_vehicle_collision(self, repo, detector):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1, vehicle_id=7)
        repo.add_order("montaje", date(2025, 3, 2), rental_id=2, vehicle_id=7)

        report = detector.validate_date_change(order.id, date(2025, 3, 2))

        [finding] = report.by_kind(FindingKind.VEHICLE)
        assert finding.resource_id == 7
        assert len(finding.orders) == 1

    def test_no_vehicle_skips_check(self, repo, detector):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.add_order("montaje", date(2025, 3, 2), rental_id=2, vehicle_id=7)

        report = detector.validate_date_change(order.id, date(2025, 3, 2))

        assert report.by_kind(FindingKind.VEHICLE) == []

    def test_three_advisories_are_alto(self, repo, detector, ana):
        beto = CrewMember(id=502, name="Beto Ruiz")
        order = repo.add_order(
            "montaje", date(2025, 3, 1), rental_id=1, crew=(ana, beto), vehicle_id=7
        )
        repo.add_order("montaje", date(2025, 3, 2), rental_id=2, crew=(ana, beto), vehicle_id=7)

        report = detector.validate_date_change(order.id, date(2025, 3, 2))

        assert len(report.advisories) == 3
        assert report.severity == Severity.ALTO
        assert report.requires_approval is False


# ═══════════════════════════════════════════════════════════════════
# Equipment
# ═══════════════════════════════════════════════════════════════════


class TestEquipment:
    def test_quantity_shortfall(self, repo, detector, chairs):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 1), quantity=100)
        other = repo.add_order("montaje", date(2025, 3, 4), rental_id=2)
        repo.commit(other, chairs, date(2025, 3, 4), date(2025, 3, 6), quantity=120)

        report = detector.validate_date_change(order.id, date(2025, 3, 5))

        [finding] = report.shortages
        assert (finding.required, finding.available, finding.shortfall) == (100, 30, 70)
        assert report.severity == Severity.CRITICO
        assert report.requires_approval is True

    def test_own_rental_is_excluded(self, repo, detector, chairs):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 5), quantity=150)

        report = detector.validate_date_change(order.id, date(2025, 3, 3))

        assert report.findings == []

    def test_quantity_lines_of_same_item_are_summed(self, repo, detector, chairs):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 1), quantity=60)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 1), quantity=60)
        other = repo.add_order("montaje", date(2025, 3, 2), rental_id=2)
        repo.commit(other, chairs, date(2025, 3, 2), date(2025, 3, 2), quantity=40)

        report = detector.validate_date_change(order.id, date(2025, 3, 2))

        [finding] = report.shortages
        assert finding.required == 120
        assert finding.shortfall == 10

    def test_busy_serial_unit(self, repo, detector, tent):
        item, units = tent
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, item, date(2025, 3, 1), date(2025, 3, 1), serial=units[0])
        other = repo.add_order("montaje", date(2025, 3, 2), rental_id=2)
        repo.commit(other, item, date(2025, 3, 2), date(2025, 3, 3), serial=units[0])

        report = detector.validate_date_change(order.id, date(2025, 3, 3))

        [finding] = report.shortages
        assert finding.shortfall == 1
        assert finding.details["serial_id"] == units[0].id
        assert report.severity == Severity.ADVERTENCIA

    @pytest.mark.parametrize(
        "needed,expected",
        [(152, Severity.ADVERTENCIA), (153, Severity.ALTO), (156, Severity.CRITICO)],
    )
    def test_severity_steps_with_shortfall(self, repo, detector, chairs, needed, expected):
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 1), quantity=needed)

        report = detector.validate_date_change(order.id, date(2025, 3, 1))

        assert report.total_shortfall == needed - 150
        assert report.severity == expected

    def test_failing_line_becomes_error_finding(self, repo, detector, chairs, tent):
        item, units = tent
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 1), quantity=200)
        repo.commit(order, item, date(2025, 3, 1), date(2025, 3, 1), quantity=1)
        original = repo.get_equipment_item

        def flaky(item_id):
            if item_id == item.id:
                raise RuntimeError("timeout reading item")
            return original(item_id)

        with patch.object(repo, "get_equipment_item", side_effect=flaky):
            report = detector.validate_date_change(order.id, date(2025, 3, 1))

        [error] = report.errors
        assert error.kind == FindingKind.EQUIPMENT
        assert error.resource_id == item.id
        assert error.details["error"]["code"] == "AVAILABILITY_CHECK_FAILED"
        [shortage] = report.shortages
        assert shortage.resource_id == chairs.id
        assert shortage.shortfall == 50


# ═══════════════════════════════════════════════════════════════════
# Sub-check isolation
# ═══════════════════════════════════════════════════════════════════


class TestSubCheckFailures:
    def test_failing_sub_check_becomes_error_finding(self, repo, detector, montaje, desmontaje):
        with patch.object(
            ConflictDetector, "check_crew", side_effect=RuntimeError("crew table locked")
        ):
            report = detector.validate_date_change(montaje.id, date(2025, 3, 6))

        [error] = report.errors
        assert error.kind == FindingKind.CREW
        assert "crew table locked" in error.message
        assert len(report.by_kind(FindingKind.PAIRED_ORDER)) == 1

    def test_only_errors_is_info(self, repo, detector, montaje):
        with patch.object(repo, "get_paired_work_order", side_effect=RuntimeError("boom")):
            report = detector.validate_date_change(montaje.id, date(2025, 3, 2))

        assert report.severity == Severity.INFO
        assert report.requires_approval is False


# ═══════════════════════════════════════════════════════════════════
# Parallel execution
# ═══════════════════════════════════════════════════════════════════


class TestParallel:
    @pytest.fixture
    def busy_order(self, repo, chairs, ana):
        order = repo.add_order(
            "montaje", date(2025, 3, 1), rental_id=1, crew=(ana,), vehicle_id=7
        )
        repo.add_order("desmontaje", date(2025, 3, 3), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 1), quantity=100)
        other = repo.add_order("montaje", date(2025, 3, 4), rental_id=2, crew=(ana,), vehicle_id=7)
        repo.commit(other, chairs, date(2025, 3, 4), date(2025, 3, 4), quantity=120)
        return order

    def test_same_report_as_sequential(self, detector, busy_order):
        sequential = detector.validate_date_change(busy_order.id, date(2025, 3, 4), parallel=False)
        parallel = detector.validate_date_change(busy_order.id, date(2025, 3, 4), parallel=True)

        assert parallel.as_dict() == sequential.as_dict()
        assert [f.kind for f in parallel.findings] == [
            FindingKind.EQUIPMENT,
            FindingKind.CREW,
            FindingKind.VEHICLE,
            FindingKind.PAIRED_ORDER,
        ]

    def test_setting_enables_parallel(self, detector, busy_order, settings):
        settings.RENTALMAN = {"PARALLEL_CHECKS": True}

        with patch.object(detector, "_run_parallel", wraps=detector._run_parallel) as run:
            detector.validate_date_change(busy_order.id, date(2025, 3, 4))

        run.assert_called_once()

    def test_timed_out_sub_check_becomes_error_finding(self, detector, busy_order, settings):
        settings.RENTALMAN = {"CHECK_TIMEOUT": 0.1}
        release = threading.Event()

        def stuck(order, candidate_date):
            release.wait(5)
            return []

        try:
            with patch.object(detector, "check_vehicle", side_effect=stuck):
                report = detector.validate_date_change(
                    busy_order.id, date(2025, 3, 4), parallel=True
                )
        finally:
            release.set()

        [error] = report.errors
        assert error.kind == FindingKind.VEHICLE
        assert "timed out" in error.message
        assert len(report.by_kind(FindingKind.CREW)) == 1
        assert report.severity == Severity.CRITICO

    def test_timeout_is_one_deadline_for_all_sub_checks(self, detector, busy_order, settings):
        """A slow check that finishes in time does not extend the wait for the next one."""
        settings.RENTALMAN = {"CHECK_TIMEOUT": 0.5}
        release = threading.Event()

        def slow(order, candidate_date):
            release.wait(0.3)
            return []

        def slower(order, candidate_date):
            release.wait(0.8)
            return []

        try:
            with patch.object(detector, "check_equipment", side_effect=slow), patch.object(
                detector, "check_crew", side_effect=slower
            ):
                report = detector.validate_date_change(
                    busy_order.id, date(2025, 3, 4), parallel=True
                )
        finally:
            release.set()

        assert [f.kind for f in report.errors] == [FindingKind.CREW]
        assert "timed out" in report.errors[0].message
        assert report.by_kind(FindingKind.EQUIPMENT) == []


# ═══════════════════════════════════════════════════════════════════
# Range scan
# ═══════════════════════════════════════════════════════════════════


class TestDetectRangeConflicts:
    def test_lists_occupied_items_and_skips_unknown(self, repo, detector, chairs, tent):
        item, _ = tent
        order = repo.add_order("montaje", date(2025, 3, 1), rental_id=1)
        repo.commit(order, chairs, date(2025, 3, 1), date(2025, 3, 3), quantity=40)

        conflicts = detector.detect_range_conflicts(
            [chairs.id, item.id, 999], date(2025, 3, 2), date(2025, 3, 10)
        )

        assert conflicts == [
            {"item_id": chairs.id, "total": 150, "occupied": 40, "available": 110}
        ]


# ═══════════════════════════════════════════════════════════════════
# ORM backend
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def rental(db):
    return Rental.objects.create(
        code="ALQ-100",
        event_name="Festival",
        start_date=date(2025, 3, 1),
        end_date=date(2025, 3, 5),
    )


@pytest.fixture
def orm_detector():
    return ConflictDetector(OrmRepository())


class TestOrmConflicts:
    def test_paired_invariant(self, rental, orm_detector):
        montaje = WorkOrder.objects.create(
            rental=rental, order_type=WorkOrderType.MONTAJE, scheduled_date=date(2025, 3, 1)
        )
        WorkOrder.objects.create(
            rental=rental, order_type=WorkOrderType.DESMONTAJE, scheduled_date=date(2025, 3, 5)
        )

        late = orm_detector.validate_date_change(montaje.pk, date(2025, 3, 6))
        fine = orm_detector.validate_date_change(montaje.pk, date(2025, 3, 4))

        assert len(late.by_kind(FindingKind.PAIRED_ORDER)) == 1
        assert fine.by_kind(FindingKind.PAIRED_ORDER) == []

    def test_crew_and_vehicle_collisions(self, rental, orm_detector):
        ana = Employee.objects.create(first_name="Ana", last_name="Pérez")
        truck = Vehicle.objects.create(plate="ABC123")
        montaje = WorkOrder.objects.create(
            rental=rental,
            order_type=WorkOrderType.MONTAJE,
            scheduled_date=date(2025, 3, 1),
            vehicle=truck,
        )
        montaje.crew.add(ana)

        other_rental = Rental.objects.create(
            code="ALQ-200", event_name="Boda", start_date=date(2025, 3, 2), end_date=date(2025, 3, 2)
        )
        other = WorkOrder.objects.create(
            rental=other_rental,
            order_type=WorkOrderType.MONTAJE,
            scheduled_date=date(2025, 3, 2),
            vehicle=truck,
        )
        other.crew.add(ana)

        report = orm_detector.validate_date_change(montaje.pk, date(2025, 3, 2))

        [crew] = report.by_kind(FindingKind.CREW)
        [vehicle] = report.by_kind(FindingKind.VEHICLE)
        assert crew.orders[0]["code"] == other.code
        assert crew.orders[0]["event_name"] == "Boda"
        assert "ABC123" in vehicle.message

    def test_equipment_shortfall_against_other_rental(self, rental, orm_detector):
        item = EquipmentItem.objects.create(code="SILLA", name="Silla", tracking=TrackingMode.LOT)
        lot = Lot.objects.create(item=item, lot_number="L1", quantity=100)
        montaje = WorkOrder.objects.create(
            rental=rental, order_type=WorkOrderType.MONTAJE, scheduled_date=date(2025, 3, 1)
        )
        Commitment.objects.create(work_order=montaje, item=item, lot=lot, quantity=80)

        other_rental = Rental.objects.create(
            code="ALQ-300", start_date=date(2025, 3, 8), end_date=date(2025, 3, 9)
        )
        other = WorkOrder.objects.create(
            rental=other_rental, order_type=WorkOrderType.MONTAJE, scheduled_date=date(2025, 3, 8)
        )
        Commitment.objects.create(work_order=other, item=item, lot=lot, quantity=50)

        report = orm_detector.validate_date_change(montaje.pk, date(2025, 3, 8))

        [finding] = report.shortages
        assert finding.shortfall == 30
        assert report.severity == Severity.CRITICO
