"""
WorkOrder model.

WorkOrder = one scheduled montaje or desmontaje of a rental, with its crew,
vehicle and equipment Commitments.

Commitment = equipment reserved by a WorkOrder over an occupancy interval.
DateChange = audit row written every time an order is rescheduled.

✅ BUSINESS LOGIC ENCAPSULATED IN MODEL
"""

import logging
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords

logger = logging.getLogger(__name__)


class WorkOrderType(models.TextChoices):
    """The two operations bracketing a rental on site."""

    MONTAJE = "montaje", _("Montaje")
    DESMONTAJE = "desmontaje", _("Desmontaje")


class WorkOrderStatus(models.TextChoices):
    """WorkOrder lifecycle status (in operational order)."""

    PENDING = "pendiente", _("Pendiente")
    CONFIRMED = "confirmado", _("Confirmado")
    PREPARING = "en_preparacion", _("En Preparación")
    EN_ROUTE = "en_ruta", _("En Ruta")
    ON_SITE = "en_sitio", _("En Sitio")
    IN_PROGRESS = "en_proceso", _("En Proceso")
    COMPLETED = "completado", _("Completado")
    CANCELLED = "cancelado", _("Cancelado")


CLOSED_STATUSES = (WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED)


class WorkOrder(models.Model):
    """
    Orden de trabajo (montaje o desmontaje).

    Status: PENDIENTE → ... → COMPLETADO | CANCELADO

    Closed orders (completado/cancelado) stop counting toward occupancy:
    their commitments are kept for history but ignored by availability.

    Invariant: a montaje is never scheduled after the desmontaje of the
    same rental (checked in clean(), reported by the conflict engine).
    """

    uuid = models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        unique=True,
        verbose_name=_("UUID"),
    )
    code = models.CharField(
        unique=True,
        max_length=50,
        blank=True,
        verbose_name=_("Código"),
        help_text=_("Identificador único (auto-generado si vacío)"),
    )
    rental = models.ForeignKey(
        "rentalman.Rental",
        on_delete=models.CASCADE,
        related_name="work_orders",
        verbose_name=_("Alquiler"),
    )
    order_type = models.CharField(
        max_length=20,
        choices=WorkOrderType.choices,
        verbose_name=_("Tipo"),
    )
    scheduled_date = models.DateField(
        db_index=True,
        verbose_name=_("Fecha Programada"),
    )
    status = models.CharField(
        max_length=20,
        choices=WorkOrderStatus.choices,
        default=WorkOrderStatus.PENDING,
        db_index=True,
        verbose_name=_("Estado"),
    )

    # Assignment (OPTIONAL)
    vehicle = models.ForeignKey(
        "rentalman.Vehicle",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="work_orders",
        verbose_name=_("Vehículo"),
    )
    crew = models.ManyToManyField(
        "rentalman.Employee",
        blank=True,
        related_name="work_orders",
        verbose_name=_("Equipo de Trabajo"),
    )

    metadata = models.JSONField(
        default=dict,
        blank=True,
        verbose_name=_("Metadatos"),
    )
    notes = models.TextField(
        blank=True,
        verbose_name=_("Observaciones"),
    )
    created_by = models.CharField(
        max_length=255,
        blank=True,
        verbose_name=_("Creado por"),
        help_text=_("Ej: 'user:ana', 'system:cotizaciones'"),
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
        db_table = "rentalman_work_order"
        verbose_name = _("Orden de Trabajo")
        verbose_name_plural = _("Órdenes de Trabajo")
        ordering = ["scheduled_date", "created_at"]
        indexes = [
            models.Index(fields=["status", "scheduled_date"], name="rentalman_wo_status_date_idx"),
            models.Index(fields=["rental", "order_type"], name="rentalman_wo_rental_type_idx"),
        ]

    def __str__(self) -> str:
        label = self.code or f"OT-{self.pk}"
        return f"{label} - {self.get_order_type_display()} {self.scheduled_date}"

    def save(self, *args, **kwargs):
        """Override save to auto-generate code."""
        if not self.code:
            self.code = self._generate_code()
        super().save(*args, **kwargs)

    def _generate_code(self) -> str:
        """Generate unique WorkOrder code in format OT-YYYY-NNNNN."""
        year = timezone.now().year
        prefix = f"OT-{year}-"

        last = (
            WorkOrder.objects.filter(code__startswith=prefix).order_by("-code").first()
        )

        if last:
            try:
                next_num = int(last.code.split("-")[-1]) + 1
            except (ValueError, IndexError):
                next_num = 1
        else:
            next_num = 1

        return f"{prefix}{next_num:05d}"

    def clean(self):
        paired = self.paired_order
        if paired is None or not self.scheduled_date:
            return
        if self.order_type == WorkOrderType.MONTAJE and self.scheduled_date > paired.scheduled_date:
            raise ValidationError(
                _("La fecha de montaje no puede ser posterior a la de desmontaje")
            )
        if self.order_type == WorkOrderType.DESMONTAJE and self.scheduled_date < paired.scheduled_date:
            raise ValidationError(
                _("La fecha de desmontaje no puede ser anterior a la de montaje")
            )

    # ══════════════════════════════════════════════════════════════
    # PROPERTIES
    # ══════════════════════════════════════════════════════════════

    @property
    def is_active(self) -> bool:
        """Counts toward occupancy?"""
        return self.status not in CLOSED_STATUSES

    @property
    def paired_type(self) -> str:
        if self.order_type == WorkOrderType.MONTAJE:
            return WorkOrderType.DESMONTAJE
        return WorkOrderType.MONTAJE

    @property
    def paired_order(self):
        """The other operation of the same rental, ignoring cancelled ones."""
        if not self.rental_id:
            return None
        return (
            WorkOrder.objects.filter(rental_id=self.rental_id, order_type=self.paired_type)
            .exclude(status=WorkOrderStatus.CANCELLED)
            .exclude(pk=self.pk)
            .order_by("scheduled_date")
            .first()
        )

    # ══════════════════════════════════════════════════════════════
    # BUSINESS LOGIC
    # ══════════════════════════════════════════════════════════════

    def reschedule(self, new_date, reason: str, user=None, forced: bool = False, severity: str = ""):
        """
        Move the order to ``new_date`` and record the change.

        Validation is NOT done here (see Engine.change_date). Commitments
        whose interval no longer covers the new date are widened to it.
        """
        if not self.is_active:
            raise ValidationError(
                _("No se puede reprogramar una orden completada o cancelada")
            )

        previous_date = self.scheduled_date
        if previous_date == new_date:
            return None

        change = DateChange.objects.create(
            work_order=self,
            previous_date=previous_date,
            new_date=new_date,
            reason=reason,
            forced=forced,
            severity=severity,
            approved_by=user if forced else None,
        )

        self.scheduled_date = new_date
        self.save(update_fields=["scheduled_date", "updated_at"])

        for commitment in self.commitments.all():
            commitment.cover(new_date)

        logger.info(
            f"WorkOrder {self.code} rescheduled {previous_date} → {new_date}",
            extra={
                "work_order": self.pk,
                "code": self.code,
                "previous_date": str(previous_date),
                "new_date": str(new_date),
                "forced": forced,
            },
        )

        from rentalman.signals import work_order_rescheduled

        work_order_rescheduled.send(
            sender=self.__class__,
            work_order=self,
            previous_date=previous_date,
            new_date=new_date,
            forced=forced,
        )
        return change

    def set_status(self, status: str, user=None):
        """Change lifecycle status; closing an order emits work_order_closed."""
        if status not in WorkOrderStatus.values:
            raise ValidationError(_(f"Estado inválido: {status}"))
        if not self.is_active:
            raise ValidationError(
                _("No se puede cambiar el estado de una orden completada o cancelada")
            )

        self.status = status
        self.save(update_fields=["status", "updated_at"])
        logger.info(f"WorkOrder {self.code} status → {status}")

        if status in CLOSED_STATUSES:
            from rentalman.signals import work_order_closed

            work_order_closed.send(sender=self.__class__, work_order=self, status=status)

    def cancel(self, reason: str = "", user=None):
        """Cancela la orden; sus compromisos dejan de ocupar inventario."""
        if reason:
            self.notes = f"{self.notes}\n[CANCELADO] {reason}".strip()
            self.save(update_fields=["notes", "updated_at"])
        self.set_status(WorkOrderStatus.CANCELLED, user)

    def complete(self, user=None):
        """Completa la orden."""
        self.set_status(WorkOrderStatus.COMPLETED, user)


class Commitment(models.Model):
    """
    Equipo comprometido por una orden de trabajo.

    Either a specific serial unit (quantity is always 1), or a quantity
    drawn from a lot or from the item's raw stock.
    """

    work_order = models.ForeignKey(
        WorkOrder,
        on_delete=models.CASCADE,
        related_name="commitments",
        verbose_name=_("Orden de Trabajo"),
    )
    item = models.ForeignKey(
        "rentalman.EquipmentItem",
        on_delete=models.PROTECT,
        related_name="commitments",
        verbose_name=_("Elemento"),
    )
    serial_unit = models.ForeignKey(
        "rentalman.SerialUnit",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commitments",
        verbose_name=_("Serie"),
    )
    lot = models.ForeignKey(
        "rentalman.Lot",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commitments",
        verbose_name=_("Lote"),
    )
    quantity = models.PositiveIntegerField(
        default=1,
        verbose_name=_("Cantidad"),
    )
    start_date = models.DateField(
        blank=True,
        verbose_name=_("Desde"),
    )
    end_date = models.DateField(
        blank=True,
        verbose_name=_("Hasta"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )

    class Meta:
        db_table = "rentalman_commitment"
        verbose_name = _("Compromiso de Equipo")
        verbose_name_plural = _("Compromisos de Equipo")
        ordering = ["work_order", "item"]
        indexes = [
            models.Index(fields=["item", "start_date", "end_date"], name="rentalman_commit_item_rng_idx"),
            models.Index(fields=["serial_unit"], name="rentalman_commit_serial_idx"),
        ]

    def __str__(self) -> str:
        what = self.serial_unit or f"{self.quantity} x {self.item.code}"
        return f"{what} → {self.work_order.code}"

    def clean(self):
        if self.serial_unit_id and self.serial_unit.item_id != self.item_id:
            raise ValidationError(_("La serie no pertenece al elemento"))
        if self.lot_id and self.lot.item_id != self.item_id:
            raise ValidationError(_("El lote no pertenece al elemento"))
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(_("Intervalo de ocupación inválido"))
        if self.serial_unit_id and self.work_order_id:
            clash = self.serial_clash()
            if clash is not None:
                raise ValidationError(
                    _("La serie %(serial)s ya está comprometida en %(order)s"),
                    params={"serial": self.serial_unit.serial_number, "order": clash.work_order.code},
                )

    def save(self, *args, **kwargs):
        """Default the interval to the rental period (or the order date)."""
        if self.serial_unit_id:
            self.quantity = 1
        self._default_interval()
        super().save(*args, **kwargs)

    def _default_interval(self):
        if self.start_date and self.end_date:
            return
        rental = self.work_order.rental
        if rental and rental.start_date and rental.end_date:
            self.start_date = self.start_date or rental.start_date
            self.end_date = self.end_date or rental.end_date
        else:
            self.start_date = self.start_date or self.work_order.scheduled_date
            self.end_date = self.end_date or self.work_order.scheduled_date

    def serial_clash(self):
        """
        Another active commitment holding this serial unit in an
        overlapping interval, or None.

        The montaje and desmontaje of one rental share the unit, so
        commitments of the same rental never clash.
        """
        self._default_interval()
        qs = (
            Commitment.objects.filter(
                serial_unit_id=self.serial_unit_id,
                start_date__lte=self.end_date,
                end_date__gte=self.start_date,
            )
            .exclude(work_order__status__in=CLOSED_STATUSES)
            .exclude(pk=self.pk)
            .exclude(work_order__rental_id=self.work_order.rental_id)
            .select_related("work_order")
        )
        return qs.first()

    @property
    def is_active(self) -> bool:
        return self.work_order.is_active

    def overlaps(self, date_from, date_to) -> bool:
        """Inclusive on both ends."""
        return self.start_date <= date_to and self.end_date >= date_from

    def cover(self, day):
        """Widen the interval so it includes ``day``."""
        if self.start_date <= day <= self.end_date:
            return
        self.start_date = min(self.start_date, day)
        self.end_date = max(self.end_date, day)
        self.save(update_fields=["start_date", "end_date"])


class DateChange(models.Model):
    """Registro de cambio de fecha de una orden."""

    work_order = models.ForeignKey(
        WorkOrder,
        on_delete=models.CASCADE,
        related_name="date_changes",
        verbose_name=_("Orden de Trabajo"),
    )
    previous_date = models.DateField(verbose_name=_("Fecha Anterior"))
    new_date = models.DateField(verbose_name=_("Fecha Nueva"))
    reason = models.TextField(verbose_name=_("Motivo"))
    forced = models.BooleanField(
        default=False,
        verbose_name=_("Forzado"),
        help_text=_("Aplicado pese a conflictos que requerían aprobación"),
    )
    severity = models.CharField(
        max_length=20,
        blank=True,
        verbose_name=_("Severidad al Aplicar"),
    )
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name=_("Aprobado por"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )

    class Meta:
        db_table = "rentalman_date_change"
        verbose_name = _("Cambio de Fecha")
        verbose_name_plural = _("Cambios de Fecha")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.work_order.code}: {self.previous_date} → {self.new_date}"
