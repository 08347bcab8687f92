"""
Rental model.

Rental = the agreement whose montaje/desmontaje work orders are scheduled.
Its [start_date, end_date] is the default occupancy interval of equipment
committed to its orders.
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


class RentalStatus(models.TextChoices):
    """Rental lifecycle status."""

    SCHEDULED = "programado", _("Programado")
    ACTIVE = "activo", _("Activo")
    FINISHED = "finalizado", _("Finalizado")
    CANCELLED = "cancelado", _("Cancelado")


class Rental(models.Model):
    """Alquiler aprobado."""

    code = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_("Código"),
    )
    event_name = models.CharField(
        max_length=200,
        blank=True,
        verbose_name=_("Evento"),
    )
    start_date = models.DateField(
        verbose_name=_("Fecha de Salida"),
    )
    end_date = models.DateField(
        verbose_name=_("Fecha de Retorno Esperado"),
    )
    status = models.CharField(
        max_length=20,
        choices=RentalStatus.choices,
        default=RentalStatus.SCHEDULED,
        db_index=True,
        verbose_name=_("Estado"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )

    class Meta:
        db_table = "rentalman_rental"
        verbose_name = _("Alquiler")
        verbose_name_plural = _("Alquileres")
        ordering = ["-start_date"]

    def __str__(self) -> str:
        return f"{self.code} - {self.event_name}" if self.event_name else self.code

    def clean(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError(
                _("La fecha de salida no puede ser posterior a la de retorno")
            )
