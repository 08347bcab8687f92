"""
Alert model.

Alert = persisted, actionable record of conflicts that need an operator.

Lifecycle: PENDIENTE → RESUELTA | DESCARTADA | ESCALADA
"""

import logging

from django.conf import settings
from django.db import models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords

from rentalman.exceptions import InvalidState, InvalidValue

logger = logging.getLogger(__name__)


class AlertKind(models.TextChoices):
    DATE_CONFLICT = "conflicto_fecha", _("Conflicto de Fecha")
    AVAILABILITY_CONFLICT = "conflicto_disponibilidad", _("Conflicto de Disponibilidad")
    CREW_CONFLICT = "conflicto_equipo", _("Conflicto de Equipo de Trabajo")
    VEHICLE_CONFLICT = "conflicto_vehiculo", _("Conflicto de Vehículo")
    DATE_CHANGE = "cambio_fecha", _("Cambio de Fecha")
    INCIDENT = "incidencia", _("Incidencia")
    OTHER = "otro", _("Otro")


class AlertSeverity(models.TextChoices):
    """Ordinal scale, lowest first."""

    LOW = "baja", _("Baja")
    MEDIUM = "media", _("Media")
    HIGH = "alta", _("Alta")
    CRITICAL = "critica", _("Crítica")


SEVERITY_SCALE = [
    AlertSeverity.LOW,
    AlertSeverity.MEDIUM,
    AlertSeverity.HIGH,
    AlertSeverity.CRITICAL,
]


class AlertStatus(models.TextChoices):
    PENDING = "pendiente", _("Pendiente")
    RESOLVED = "resuelta", _("Resuelta")
    DISCARDED = "descartada", _("Descartada")
    ESCALATED = "escalada", _("Escalada")


RESOLUTION_OUTCOMES = (AlertStatus.RESOLVED, AlertStatus.DISCARDED)


def next_severity(severity: str) -> str:
    """One step up the scale, capped at critica."""
    if severity not in SEVERITY_SCALE:
        raise InvalidValue("INVALID_SEVERITY", severity=severity)
    index = SEVERITY_SCALE.index(severity)
    return SEVERITY_SCALE[min(index + 1, len(SEVERITY_SCALE) - 1)]


class Alert(models.Model):
    """Alerta de operaciones."""

    work_order = models.ForeignKey(
        "rentalman.WorkOrder",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="alerts",
        verbose_name=_("Orden de Trabajo"),
    )
    kind = models.CharField(
        max_length=30,
        choices=AlertKind.choices,
        db_index=True,
        verbose_name=_("Tipo"),
    )
    severity = models.CharField(
        max_length=10,
        choices=AlertSeverity.choices,
        default=AlertSeverity.MEDIUM,
        db_index=True,
        verbose_name=_("Severidad"),
    )
    title = models.CharField(max_length=255, verbose_name=_("Título"))
    message = models.TextField(blank=True, verbose_name=_("Mensaje"))
    data = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_("Datos"),
        help_text=_("Hallazgos que originaron la alerta"),
    )
    status = models.CharField(
        max_length=20,
        choices=AlertStatus.choices,
        default=AlertStatus.PENDING,
        db_index=True,
        verbose_name=_("Estado"),
    )
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("Resuelta por"),
    )
    resolved_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Fecha de Resolución"),
    )
    resolution_notes = models.TextField(
        blank=True,
        verbose_name=_("Notas de Resolución"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Actualizado en"),
    )

    history = HistoricalRecords()

    class Meta:
        db_table = "rentalman_alert"
        verbose_name = _("Alerta")
        verbose_name_plural = _("Alertas")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "severity"], name="rentalman_alert_status_sev_idx"),
        ]

    def __str__(self) -> str:
        return f"[{self.severity}] {self.title}"

    @property
    def is_pending(self) -> bool:
        return self.status == AlertStatus.PENDING

    def _lock(self) -> "Alert":
        """Re-read this row under SELECT FOR UPDATE (call inside atomic)."""
        return Alert.objects.select_for_update().get(pk=self.pk)

    def resolve(self, user=None, notes: str = "", outcome: str = AlertStatus.RESOLVED):
        """
        Close a pending alert as resuelta or descartada.

        Not idempotent: a second call fails with InvalidState, also when
        the two calls race (the status is checked on the locked row).
        """
        if outcome not in RESOLUTION_OUTCOMES:
            raise InvalidValue(
                "INVALID_OUTCOME",
                outcome=outcome,
                allowed=[str(o) for o in RESOLUTION_OUTCOMES],
            )

        with transaction.atomic():
            current = self._lock()
            if current.status != AlertStatus.PENDING:
                self.status = current.status
                raise InvalidState(
                    "ALERT_ALREADY_PROCESSED", alert=self.pk, status=current.status
                )

            self.status = outcome
            self.resolved_by = user
            self.resolved_at = timezone.now()
            self.resolution_notes = notes or ""
            self.save(
                update_fields=[
                    "status",
                    "resolved_by",
                    "resolved_at",
                    "resolution_notes",
                    "updated_at",
                ]
            )

        logger.info(
            f"Alert {self.pk} {outcome}",
            extra={"alert": self.pk, "outcome": outcome, "kind": self.kind},
        )

        from rentalman.signals import alert_resolved

        alert_resolved.send(sender=self.__class__, alert=self, outcome=outcome, user=user)

    def escalate(self, notes: str = "") -> str:
        """
        Mark as escalada and raise severity one step (no-op at critica).

        Severity and notes are taken from the locked row, so concurrent
        escalations each add one step.

        Returns the resulting severity.
        """
        with transaction.atomic():
            current = self._lock()
            if current.status in RESOLUTION_OUTCOMES:
                self.status = current.status
                raise InvalidState(
                    "ALERT_ALREADY_PROCESSED", alert=self.pk, status=current.status
                )

            previous = current.severity
            self.severity = next_severity(previous)
            self.status = AlertStatus.ESCALATED
            self.resolution_notes = (
                f"{current.resolution_notes}\n[ESCALADA] {notes or 'Alerta escalada'}".strip()
            )
            self.save(update_fields=["severity", "status", "resolution_notes", "updated_at"])

        logger.info(
            f"Alert {self.pk} escalated {previous} → {self.severity}",
            extra={"alert": self.pk, "previous": previous, "severity": self.severity},
        )

        from rentalman.signals import alert_escalated

        alert_escalated.send(
            sender=self.__class__, alert=self, previous_severity=previous
        )
        return self.severity
