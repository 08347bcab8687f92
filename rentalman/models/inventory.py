"""
Inventory models.

EquipmentItem = catalog entry for a rentable thing.
SerialUnit = one individually tracked physical unit of a serialized item.
Lot = a batch of fungible units of a lot-tracked item.

Stock is never stored as a running counter: occupancy is always derived
from Commitments (see rentalman.services.availability).
"""

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


class TrackingMode(models.TextChoices):
    """How physical units of an item are tracked."""

    SERIALIZED = "serialized", _("Por Serie")
    LOT = "lot", _("Por Lote")


class SerialStatus(models.TextChoices):
    """SerialUnit lifecycle status."""

    AVAILABLE = "available", _("Disponible")
    RENTED = "rented", _("Alquilado")
    MAINTENANCE = "maintenance", _("En Mantenimiento")
    DAMAGED = "damaged", _("Dañado")
    LOST = "lost", _("Perdido")
    RETIRED = "retired", _("Dado de Baja")


class LotStatus(models.TextChoices):
    """Lot lifecycle status."""

    AVAILABLE = "available", _("Disponible")
    RENTED = "rented", _("Alquilado")
    MAINTENANCE = "maintenance", _("En Mantenimiento")
    DAMAGED = "damaged", _("Dañado")
    RETIRED = "retired", _("Dado de Baja")


class EquipmentItem(models.Model):
    """
    Elemento de inventario (carpa, tarima, silla...).

    ``tracking`` is fixed at creation. ``quantity`` is the raw on-hand
    count, only consulted when the item has neither serial units nor lots.
    """

    code = models.CharField(
        max_length=50,
        unique=True,
        verbose_name=_("Código"),
    )
    name = models.CharField(
        max_length=200,
        verbose_name=_("Nombre"),
    )
    tracking = models.CharField(
        max_length=20,
        choices=TrackingMode.choices,
        default=TrackingMode.SERIALIZED,
        verbose_name=_("Tipo de Seguimiento"),
    )
    quantity = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Cantidad"),
        help_text=_("Cantidad bruta (solo respaldo si no hay series ni lotes)"),
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name=_("Activo"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name=_("Actualizado en"),
    )

    class Meta:
        db_table = "rentalman_equipment_item"
        verbose_name = _("Elemento")
        verbose_name_plural = _("Elementos")
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"

    def save(self, *args, **kwargs):
        """Tracking mode cannot change once the item exists."""
        if self.pk:
            previous = (
                EquipmentItem.objects.filter(pk=self.pk)
                .values_list("tracking", flat=True)
                .first()
            )
            if previous is not None and previous != self.tracking:
                raise ValidationError(
                    _("El tipo de seguimiento no se puede cambiar después de creado")
                )
        super().save(*args, **kwargs)

    @property
    def is_serialized(self) -> bool:
        return self.tracking == TrackingMode.SERIALIZED


class SerialUnit(models.Model):
    """Unidad física identificada por número de serie."""

    item = models.ForeignKey(
        EquipmentItem,
        on_delete=models.PROTECT,
        related_name="serial_units",
        verbose_name=_("Elemento"),
    )
    serial_number = models.CharField(
        max_length=100,
        verbose_name=_("Número de Serie"),
    )
    status = models.CharField(
        max_length=20,
        choices=SerialStatus.choices,
        default=SerialStatus.AVAILABLE,
        db_index=True,
        verbose_name=_("Estado"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )

    class Meta:
        db_table = "rentalman_serial_unit"
        verbose_name = _("Serie")
        verbose_name_plural = _("Series")
        ordering = ["serial_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["item", "serial_number"], name="rentalman_unique_serial"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.item.code} #{self.serial_number}"


class Lot(models.Model):
    """Lote de unidades intercambiables."""

    item = models.ForeignKey(
        EquipmentItem,
        on_delete=models.PROTECT,
        related_name="lots",
        verbose_name=_("Elemento"),
    )
    lot_number = models.CharField(
        max_length=100,
        verbose_name=_("Número de Lote"),
    )
    quantity = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Cantidad"),
    )
    status = models.CharField(
        max_length=20,
        choices=LotStatus.choices,
        default=LotStatus.AVAILABLE,
        db_index=True,
        verbose_name=_("Estado"),
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Creado en"),
    )

    class Meta:
        db_table = "rentalman_lot"
        verbose_name = _("Lote")
        verbose_name_plural = _("Lotes")
        ordering = ["lot_number"]

    def __str__(self) -> str:
        return f"{self.item.code} lote {self.lot_number} ({self.quantity})"
