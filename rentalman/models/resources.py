"""
Crew and vehicle models.

Only the fields the conflict engine needs; employee and vehicle management
lives elsewhere.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Employee(models.Model):
    """Empleado asignable a órdenes de trabajo."""

    first_name = models.CharField(max_length=100, verbose_name=_("Nombre"))
    last_name = models.CharField(max_length=100, blank=True, verbose_name=_("Apellido"))
    is_active = models.BooleanField(default=True, verbose_name=_("Activo"))

    class Meta:
        db_table = "rentalman_employee"
        verbose_name = _("Empleado")
        verbose_name_plural = _("Empleados")
        ordering = ["first_name", "last_name"]

    def __str__(self) -> str:
        return self.full_name

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Vehicle(models.Model):
    """Vehículo de transporte."""

    plate = models.CharField(max_length=20, unique=True, verbose_name=_("Placa"))
    description = models.CharField(max_length=200, blank=True, verbose_name=_("Descripción"))
    is_active = models.BooleanField(default=True, verbose_name=_("Activo"))

    class Meta:
        db_table = "rentalman_vehicle"
        verbose_name = _("Vehículo")
        verbose_name_plural = _("Vehículos")
        ordering = ["plate"]

    def __str__(self) -> str:
        return self.plate
