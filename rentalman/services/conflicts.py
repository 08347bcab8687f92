"""
Conflict detection service -- what breaks if a work order moves to a date.

    validate_date_change(order_id, candidate_date) → ConflictReport

Four independent sub-checks, combined in this order:
    equipment → crew → vehicle → paired order

A failing sub-check (or a failing equipment line) becomes an
error-flagged finding; the report is always produced unless the order
itself does not exist. Validation never writes.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import date

from rentalman.conf import get_repository_backend, get_setting
from rentalman.exceptions import NotFound, RentalError
from rentalman.protocols.ledger import OrderRecord, Repository
from rentalman.results import ConflictFinding, ConflictReport, FindingKind
from rentalman.services import severity
from rentalman.services.availability import AvailabilityCalculator

logger = logging.getLogger(__name__)


MONTAJE = "montaje"
DESMONTAJE = "desmontaje"


class ConflictDetector:
    """
    Usage:
        report = ConflictDetector().validate_date_change(order.pk, date(2025, 3, 6))
        if report.requires_approval:
            ...
    """

    def __init__(
        self,
        repository: Repository | None = None,
        calculator: AvailabilityCalculator | None = None,
        thresholds: severity.Thresholds | None = None,
    ):
        self._repository = repository
        self.calculator = calculator or AvailabilityCalculator(repository)
        self.thresholds = thresholds

    @property
    def repository(self) -> Repository:
        return self._repository or get_repository_backend()

    # ══════════════════════════════════════════════════════════════
    # DATE CHANGE VALIDATION
    # ══════════════════════════════════════════════════════════════

    def validate_date_change(
        self, order_id: int, candidate_date: date, parallel: bool | None = None
    ) -> ConflictReport:
        """
        Check equipment, crew, vehicle and paired order for a candidate date.

        Raises:
            NotFound: the order does not exist (the only abort)
        """
        order = self.repository.get_work_order(order_id)
        if order is None:
            raise NotFound("WORK_ORDER_NOT_FOUND", order_id=order_id)

        checks = OrderedDict(
            [
                (FindingKind.EQUIPMENT, self.check_equipment),
                (FindingKind.CREW, self.check_crew),
                (FindingKind.VEHICLE, self.check_vehicle),
                (FindingKind.PAIRED_ORDER, self.check_paired_order),
            ]
        )

        if parallel is None:
            parallel = get_setting("PARALLEL_CHECKS")

        if parallel:
            results = self._run_parallel(checks, order, candidate_date)
        else:
            results = self._run_sequential(checks, order, candidate_date)

        findings = []
        for kind in checks:
            findings.extend(results[kind])

        report = ConflictReport(
            order_id=order.id,
            current_date=order.scheduled_date,
            candidate_date=candidate_date,
            findings=findings,
        )
        severity.apply(report, self.thresholds)

        logger.info(
            f"Validated WorkOrder {order.code} → {candidate_date}: {report.severity}",
            extra={
                "work_order": order.id,
                "candidate_date": str(candidate_date),
                "severity": report.severity,
                "findings": len(findings),
                "requires_approval": report.requires_approval,
            },
        )

        from rentalman.signals import date_change_validated

        date_change_validated.send(sender=self.__class__, report=report)
        return report

    # ── Sub-checks ──

    def check_equipment(self, order: OrderRecord, candidate_date: date) -> list[ConflictFinding]:
        """
        One finding per short item (quantity lines) or busy unit (serial lines).

        Commitments of the order's own rental are left out of occupancy.
        """
        findings = []
        exclude = order.rental_id

        for line in order.lines:
            if not line.is_serial_bound:
                continue
            try:
                free = self.calculator.is_serial_available(
                    line.serial_id, candidate_date, exclude_rental_id=exclude
                )
            except Exception as e:
                findings.append(self._line_error(line.item_id, line.item_name, e, serial_id=line.serial_id))
                continue
            if not free:
                findings.append(
                    ConflictFinding(
                        kind=FindingKind.EQUIPMENT,
                        resource_id=line.item_id,
                        message=f"La serie {line.serial_id} de {line.item_name} no está disponible",
                        required=1,
                        available=0,
                        shortfall=1,
                        details={"serial_id": line.serial_id, "item_name": line.item_name},
                    )
                )

        # Quantity lines of the same item are one requirement
        required: dict[int, int] = OrderedDict()
        names: dict[int, str] = {}
        for line in order.lines:
            if line.is_serial_bound:
                continue
            required[line.item_id] = required.get(line.item_id, 0) + line.quantity
            names[line.item_id] = line.item_name

        for item_id, quantity in required.items():
            try:
                availability = self.calculator.check(
                    item_id, candidate_date, exclude_rental_id=exclude
                )
            except Exception as e:
                findings.append(self._line_error(item_id, names[item_id], e))
                continue
            if availability.available < quantity:
                shortfall = quantity - availability.available
                findings.append(
                    ConflictFinding(
                        kind=FindingKind.EQUIPMENT,
                        resource_id=item_id,
                        message=(
                            f"Faltan {shortfall} unidad(es) de {names[item_id]}: "
                            f"requeridas {quantity}, disponibles {availability.available}"
                        ),
                        required=quantity,
                        available=availability.available,
                        shortfall=shortfall,
                        details={
                            "item_name": names[item_id],
                            "total_stock": availability.total_stock,
                            "occupied": availability.occupied,
                            "source": availability.source,
                        },
                    )
                )

        return findings

    def check_crew(self, order: OrderRecord, candidate_date: date) -> list[ConflictFinding]:
        """Crew members already assigned to another active order that day."""
        findings = []
        for member in order.crew:
            others = self.repository.list_orders_for_employee(
                member.id, candidate_date, exclude_order_id=order.id
            )
            if others:
                findings.append(
                    ConflictFinding(
                        kind=FindingKind.CREW,
                        resource_id=member.id,
                        message=(
                            f"{member.name} ya está asignado a {len(others)} "
                            f"orden(es) el {candidate_date}"
                        ),
                        orders=[o.as_dict() for o in others],
                        details={"employee_name": member.name},
                    )
                )
        return findings

    def check_vehicle(self, order: OrderRecord, candidate_date: date) -> list[ConflictFinding]:
        if order.vehicle_id is None:
            return []
        others = self.repository.list_orders_for_vehicle(
            order.vehicle_id, candidate_date, exclude_order_id=order.id
        )
        if not others:
            return []
        label = order.vehicle_plate or order.vehicle_id
        return [
            ConflictFinding(
                kind=FindingKind.VEHICLE,
                resource_id=order.vehicle_id,
                message=f"El vehículo {label} ya está asignado el {candidate_date}",
                orders=[o.as_dict() for o in others],
                details={"plate": order.vehicle_plate},
            )
        ]

    def check_paired_order(self, order: OrderRecord, candidate_date: date) -> list[ConflictFinding]:
        """Montaje must not fall after desmontaje (cancelled orders ignored)."""
        if order.rental_id is None:
            return []
        paired_type = DESMONTAJE if order.order_type == MONTAJE else MONTAJE
        paired = self.repository.get_paired_work_order(order.rental_id, paired_type)
        if paired is None or paired.id == order.id:
            return []

        if order.order_type == MONTAJE and candidate_date > paired.scheduled_date:
            message = (
                f"La fecha de montaje ({candidate_date}) no puede ser posterior "
                f"a la de desmontaje ({paired.scheduled_date})"
            )
        elif order.order_type == DESMONTAJE and candidate_date < paired.scheduled_date:
            message = (
                f"La fecha de desmontaje ({candidate_date}) no puede ser anterior "
                f"a la de montaje ({paired.scheduled_date})"
            )
        else:
            return []

        return [
            ConflictFinding(
                kind=FindingKind.PAIRED_ORDER,
                resource_id=paired.id,
                message=message,
                orders=[
                    {
                        "id": paired.id,
                        "code": paired.code,
                        "order_type": paired.order_type,
                        "scheduled_date": str(paired.scheduled_date),
                    }
                ],
            )
        ]

    # ── Execution ──

    def _run_sequential(self, checks, order, candidate_date) -> dict:
        results = {}
        for kind, check in checks.items():
            try:
                results[kind] = check(order, candidate_date)
            except Exception as e:
                results[kind] = [self._check_error(kind, order, e)]
        return results

    def _run_parallel(self, checks, order, candidate_date) -> dict:
        """
        One deadline for the whole set: whatever is not done CHECK_TIMEOUT
        seconds after submission becomes an error finding.
        """
        timeout = get_setting("CHECK_TIMEOUT")
        executor = ThreadPoolExecutor(max_workers=len(checks), thread_name_prefix="rentalman-check")
        try:
            futures = {
                kind: executor.submit(_isolated, check, order, candidate_date)
                for kind, check in checks.items()
            }
            wait(futures.values(), timeout=timeout)

            results = {}
            for kind, future in futures.items():
                if not future.done():
                    future.cancel()
                    results[kind] = [
                        self._check_error(kind, order, TimeoutError(f"timed out after {timeout}s"))
                    ]
                    continue
                try:
                    results[kind] = future.result()
                except Exception as e:
                    results[kind] = [self._check_error(kind, order, e)]
            return results
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _check_error(self, kind: str, order: OrderRecord, error: Exception) -> ConflictFinding:
        logger.warning(
            f"Check '{kind}' failed for WorkOrder {order.code}: {error}",
            extra={"work_order": order.id, "check": kind},
        )
        return ConflictFinding(
            kind=kind,
            resource_id=None,
            message=f"No se pudo verificar ({kind}): {error}",
            error=True,
            details=_error_details(error),
        )

    def _line_error(self, item_id, item_name, error: Exception, **extra) -> ConflictFinding:
        logger.warning(
            f"Availability check failed for item {item_id}: {error}",
            extra={"item": item_id, **extra},
        )
        return ConflictFinding(
            kind=FindingKind.EQUIPMENT,
            resource_id=item_id,
            message=f"No se pudo verificar la disponibilidad de {item_name}",
            error=True,
            details={"item_name": item_name, **extra, **_error_details(error)},
        )

    # ══════════════════════════════════════════════════════════════
    # RANGE SCAN
    # ══════════════════════════════════════════════════════════════

    def detect_range_conflicts(self, item_ids, date_from: date, date_to: date) -> list[dict]:
        """
        Items with any occupancy in [date_from, date_to].

        Items that cannot be checked are skipped and logged.
        """
        conflicts = []
        for item_id in item_ids:
            try:
                availability = self.calculator.check(item_id, date_from, date_to)
            except RentalError as e:
                logger.warning(
                    f"Skipping item {item_id} in range scan: {e}",
                    extra={"item": item_id, "code": e.code},
                )
                continue
            if availability.occupied > 0:
                conflicts.append(
                    {
                        "item_id": item_id,
                        "total": availability.total_stock,
                        "occupied": availability.occupied,
                        "available": availability.available,
                    }
                )
        return conflicts


def _isolated(check, order, candidate_date):
    """Run a sub-check in a worker thread and release its DB connection."""
    from django.db import connections

    try:
        return check(order, candidate_date)
    finally:
        connections.close_all()


def _error_details(error: Exception) -> dict:
    if isinstance(error, RentalError):
        return {"error": error.as_dict()}
    return {"error": {"code": type(error).__name__, "message": str(error)}}
