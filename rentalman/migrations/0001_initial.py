"""
Initial migration for Rentalman.

Creates:
- Inventory: EquipmentItem, SerialUnit, Lot
- Rental, Employee, Vehicle
- WorkOrder, Commitment, DateChange
- Alert
- History tracking for WorkOrder and Alert
"""

import uuid

import django.db.models.deletion
import simple_history.models
from django.conf import settings
from django.db import migrations, models


WORK_ORDER_TYPES = [("montaje", "Montaje"), ("desmontaje", "Desmontaje")]

WORK_ORDER_STATUSES = [
    ("pendiente", "Pendiente"),
    ("confirmado", "Confirmado"),
    ("en_preparacion", "En Preparación"),
    ("en_ruta", "En Ruta"),
    ("en_sitio", "En Sitio"),
    ("en_proceso", "En Proceso"),
    ("completado", "Completado"),
    ("cancelado", "Cancelado"),
]

ALERT_KINDS = [
    ("conflicto_fecha", "Conflicto de Fecha"),
    ("conflicto_disponibilidad", "Conflicto de Disponibilidad"),
    ("conflicto_equipo", "Conflicto de Equipo de Trabajo"),
    ("conflicto_vehiculo", "Conflicto de Vehículo"),
    ("cambio_fecha", "Cambio de Fecha"),
    ("incidencia", "Incidencia"),
    ("otro", "Otro"),
]

ALERT_SEVERITIES = [
    ("baja", "Baja"),
    ("media", "Media"),
    ("alta", "Alta"),
    ("critica", "Crítica"),
]

ALERT_STATUSES = [
    ("pendiente", "Pendiente"),
    ("resuelta", "Resuelta"),
    ("descartada", "Descartada"),
    ("escalada", "Escalada"),
]

HISTORY_TYPES = [("+", "Created"), ("~", "Changed"), ("-", "Deleted")]


def _pk():
    return models.BigAutoField(
        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ══════════════════════════════════════════════════════════════
        # INVENTORY
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="EquipmentItem",
            fields=[
                ("id", _pk()),
                ("code", models.CharField(max_length=50, unique=True, verbose_name="Código")),
                ("name", models.CharField(max_length=200, verbose_name="Nombre")),
                (
                    "tracking",
                    models.CharField(
                        choices=[("serialized", "Por Serie"), ("lot", "Por Lote")],
                        default="serialized",
                        max_length=20,
                        verbose_name="Tipo de Seguimiento",
                    ),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Cantidad bruta (solo respaldo si no hay series ni lotes)",
                        verbose_name="Cantidad",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Actualizado en")),
            ],
            options={
                "verbose_name": "Elemento",
                "verbose_name_plural": "Elementos",
                "db_table": "rentalman_equipment_item",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="SerialUnit",
            fields=[
                ("id", _pk()),
                ("serial_number", models.CharField(max_length=100, verbose_name="Número de Serie")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Disponible"),
                            ("rented", "Alquilado"),
                            ("maintenance", "En Mantenimiento"),
                            ("damaged", "Dañado"),
                            ("lost", "Perdido"),
                            ("retired", "Dado de Baja"),
                        ],
                        db_index=True,
                        default="available",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="serial_units",
                        to="rentalman.equipmentitem",
                        verbose_name="Elemento",
                    ),
                ),
            ],
            options={
                "verbose_name": "Serie",
                "verbose_name_plural": "Series",
                "db_table": "rentalman_serial_unit",
                "ordering": ["serial_number"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("item", "serial_number"), name="rentalman_unique_serial"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Lot",
            fields=[
                ("id", _pk()),
                ("lot_number", models.CharField(max_length=100, verbose_name="Número de Lote")),
                ("quantity", models.PositiveIntegerField(default=0, verbose_name="Cantidad")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("available", "Disponible"),
                            ("rented", "Alquilado"),
                            ("maintenance", "En Mantenimiento"),
                            ("damaged", "Dañado"),
                            ("retired", "Dado de Baja"),
                        ],
                        db_index=True,
                        default="available",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lots",
                        to="rentalman.equipmentitem",
                        verbose_name="Elemento",
                    ),
                ),
            ],
            options={
                "verbose_name": "Lote",
                "verbose_name_plural": "Lotes",
                "db_table": "rentalman_lot",
                "ordering": ["lot_number"],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # RENTAL, CREW, VEHICLES
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="Rental",
            fields=[
                ("id", _pk()),
                ("code", models.CharField(max_length=50, unique=True, verbose_name="Código")),
                ("event_name", models.CharField(blank=True, max_length=200, verbose_name="Evento")),
                ("start_date", models.DateField(verbose_name="Fecha de Salida")),
                ("end_date", models.DateField(verbose_name="Fecha de Retorno Esperado")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("programado", "Programado"),
                            ("activo", "Activo"),
                            ("finalizado", "Finalizado"),
                            ("cancelado", "Cancelado"),
                        ],
                        db_index=True,
                        default="programado",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
            ],
            options={
                "verbose_name": "Alquiler",
                "verbose_name_plural": "Alquileres",
                "db_table": "rentalman_rental",
                "ordering": ["-start_date"],
            },
        ),
        migrations.CreateModel(
            name="Employee",
            fields=[
                ("id", _pk()),
                ("first_name", models.CharField(max_length=100, verbose_name="Nombre")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="Apellido")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
            ],
            options={
                "verbose_name": "Empleado",
                "verbose_name_plural": "Empleados",
                "db_table": "rentalman_employee",
                "ordering": ["first_name", "last_name"],
            },
        ),
        migrations.CreateModel(
            name="Vehicle",
            fields=[
                ("id", _pk()),
                ("plate", models.CharField(max_length=20, unique=True, verbose_name="Placa")),
                ("description", models.CharField(blank=True, max_length=200, verbose_name="Descripción")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
            ],
            options={
                "verbose_name": "Vehículo",
                "verbose_name_plural": "Vehículos",
                "db_table": "rentalman_vehicle",
                "ordering": ["plate"],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # WORK ORDERS
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="WorkOrder",
            fields=[
                ("id", _pk()),
                (
                    "uuid",
                    models.UUIDField(default=uuid.uuid4, editable=False, unique=True, verbose_name="UUID"),
                ),
                (
                    "code",
                    models.CharField(
                        blank=True,
                        help_text="Identificador único (auto-generado si vacío)",
                        max_length=50,
                        unique=True,
                        verbose_name="Código",
                    ),
                ),
                (
                    "order_type",
                    models.CharField(choices=WORK_ORDER_TYPES, max_length=20, verbose_name="Tipo"),
                ),
                ("scheduled_date", models.DateField(db_index=True, verbose_name="Fecha Programada")),
                (
                    "status",
                    models.CharField(
                        choices=WORK_ORDER_STATUSES,
                        db_index=True,
                        default="pendiente",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="Metadatos")),
                ("notes", models.TextField(blank=True, verbose_name="Observaciones")),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Ej: 'user:ana', 'system:cotizaciones'",
                        max_length=255,
                        verbose_name="Creado por",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Actualizado en")),
                (
                    "rental",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="work_orders",
                        to="rentalman.rental",
                        verbose_name="Alquiler",
                    ),
                ),
                (
                    "vehicle",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="work_orders",
                        to="rentalman.vehicle",
                        verbose_name="Vehículo",
                    ),
                ),
                (
                    "crew",
                    models.ManyToManyField(
                        blank=True,
                        related_name="work_orders",
                        to="rentalman.employee",
                        verbose_name="Equipo de Trabajo",
                    ),
                ),
            ],
            options={
                "verbose_name": "Orden de Trabajo",
                "verbose_name_plural": "Órdenes de Trabajo",
                "db_table": "rentalman_work_order",
                "ordering": ["scheduled_date", "created_at"],
                "indexes": [
                    models.Index(fields=["status", "scheduled_date"], name="rentalman_wo_status_date_idx"),
                    models.Index(fields=["rental", "order_type"], name="rentalman_wo_rental_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Commitment",
            fields=[
                ("id", _pk()),
                ("quantity", models.PositiveIntegerField(default=1, verbose_name="Cantidad")),
                ("start_date", models.DateField(blank=True, verbose_name="Desde")),
                ("end_date", models.DateField(blank=True, verbose_name="Hasta")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                (
                    "work_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="commitments",
                        to="rentalman.workorder",
                        verbose_name="Orden de Trabajo",
                    ),
                ),
                (
                    "item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commitments",
                        to="rentalman.equipmentitem",
                        verbose_name="Elemento",
                    ),
                ),
                (
                    "serial_unit",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commitments",
                        to="rentalman.serialunit",
                        verbose_name="Serie",
                    ),
                ),
                (
                    "lot",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commitments",
                        to="rentalman.lot",
                        verbose_name="Lote",
                    ),
                ),
            ],
            options={
                "verbose_name": "Compromiso de Equipo",
                "verbose_name_plural": "Compromisos de Equipo",
                "db_table": "rentalman_commitment",
                "ordering": ["work_order", "item"],
                "indexes": [
                    models.Index(fields=["item", "start_date", "end_date"], name="rentalman_commit_item_rng_idx"),
                    models.Index(fields=["serial_unit"], name="rentalman_commit_serial_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DateChange",
            fields=[
                ("id", _pk()),
                ("previous_date", models.DateField(verbose_name="Fecha Anterior")),
                ("new_date", models.DateField(verbose_name="Fecha Nueva")),
                ("reason", models.TextField(verbose_name="Motivo")),
                (
                    "forced",
                    models.BooleanField(
                        default=False,
                        help_text="Aplicado pese a conflictos que requerían aprobación",
                        verbose_name="Forzado",
                    ),
                ),
                ("severity", models.CharField(blank=True, max_length=20, verbose_name="Severidad al Aplicar")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                (
                    "work_order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="date_changes",
                        to="rentalman.workorder",
                        verbose_name="Orden de Trabajo",
                    ),
                ),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Aprobado por",
                    ),
                ),
            ],
            options={
                "verbose_name": "Cambio de Fecha",
                "verbose_name_plural": "Cambios de Fecha",
                "db_table": "rentalman_date_change",
                "ordering": ["-created_at"],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # ALERTS
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="Alert",
            fields=[
                ("id", _pk()),
                (
                    "kind",
                    models.CharField(choices=ALERT_KINDS, db_index=True, max_length=30, verbose_name="Tipo"),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=ALERT_SEVERITIES,
                        db_index=True,
                        default="media",
                        max_length=10,
                        verbose_name="Severidad",
                    ),
                ),
                ("title", models.CharField(max_length=255, verbose_name="Título")),
                ("message", models.TextField(blank=True, verbose_name="Mensaje")),
                (
                    "data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Hallazgos que originaron la alerta",
                        verbose_name="Datos",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ALERT_STATUSES,
                        db_index=True,
                        default="pendiente",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="Fecha de Resolución")),
                ("resolution_notes", models.TextField(blank=True, verbose_name="Notas de Resolución")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado en")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Actualizado en")),
                (
                    "work_order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="alerts",
                        to="rentalman.workorder",
                        verbose_name="Orden de Trabajo",
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Resuelta por",
                    ),
                ),
            ],
            options={
                "verbose_name": "Alerta",
                "verbose_name_plural": "Alertas",
                "db_table": "rentalman_alert",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "severity"], name="rentalman_alert_status_sev_idx"),
                ],
            },
        ),
        # ══════════════════════════════════════════════════════════════
        # HISTORICAL RECORDS
        # ══════════════════════════════════════════════════════════════
        migrations.CreateModel(
            name="HistoricalWorkOrder",
            fields=[
                (
                    "id",
                    models.BigIntegerField(
                        auto_created=True, blank=True, db_index=True, verbose_name="ID"
                    ),
                ),
                (
                    "uuid",
                    models.UUIDField(db_index=True, default=uuid.uuid4, editable=False, verbose_name="UUID"),
                ),
                (
                    "code",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Identificador único (auto-generado si vacío)",
                        max_length=50,
                        verbose_name="Código",
                    ),
                ),
                (
                    "order_type",
                    models.CharField(choices=WORK_ORDER_TYPES, max_length=20, verbose_name="Tipo"),
                ),
                ("scheduled_date", models.DateField(db_index=True, verbose_name="Fecha Programada")),
                (
                    "status",
                    models.CharField(
                        choices=WORK_ORDER_STATUSES,
                        db_index=True,
                        default="pendiente",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="Metadatos")),
                ("notes", models.TextField(blank=True, verbose_name="Observaciones")),
                (
                    "created_by",
                    models.CharField(
                        blank=True,
                        help_text="Ej: 'user:ana', 'system:cotizaciones'",
                        max_length=255,
                        verbose_name="Creado por",
                    ),
                ),
                ("created_at", models.DateTimeField(blank=True, editable=False, verbose_name="Creado en")),
                ("updated_at", models.DateTimeField(blank=True, editable=False, verbose_name="Actualizado en")),
                ("history_id", models.AutoField(primary_key=True, serialize=False)),
                ("history_date", models.DateTimeField(db_index=True)),
                ("history_change_reason", models.CharField(max_length=100, null=True)),
                ("history_type", models.CharField(choices=HISTORY_TYPES, max_length=1)),
                (
                    "history_user",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "rental",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="rentalman.rental",
                        verbose_name="Alquiler",
                    ),
                ),
                (
                    "vehicle",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="rentalman.vehicle",
                        verbose_name="Vehículo",
                    ),
                ),
            ],
            options={
                "verbose_name": "historical Orden de Trabajo",
                "verbose_name_plural": "historical Órdenes de Trabajo",
                "ordering": ("-history_date", "-history_id"),
                "get_latest_by": ("history_date", "history_id"),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="HistoricalAlert",
            fields=[
                (
                    "id",
                    models.BigIntegerField(
                        auto_created=True, blank=True, db_index=True, verbose_name="ID"
                    ),
                ),
                (
                    "kind",
                    models.CharField(choices=ALERT_KINDS, db_index=True, max_length=30, verbose_name="Tipo"),
                ),
                (
                    "severity",
                    models.CharField(
                        choices=ALERT_SEVERITIES,
                        db_index=True,
                        default="media",
                        max_length=10,
                        verbose_name="Severidad",
                    ),
                ),
                ("title", models.CharField(max_length=255, verbose_name="Título")),
                ("message", models.TextField(blank=True, verbose_name="Mensaje")),
                (
                    "data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Hallazgos que originaron la alerta",
                        verbose_name="Datos",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ALERT_STATUSES,
                        db_index=True,
                        default="pendiente",
                        max_length=20,
                        verbose_name="Estado",
                    ),
                ),
                ("resolved_at", models.DateTimeField(blank=True, null=True, verbose_name="Fecha de Resolución")),
                ("resolution_notes", models.TextField(blank=True, verbose_name="Notas de Resolución")),
                ("created_at", models.DateTimeField(blank=True, editable=False, verbose_name="Creado en")),
                ("updated_at", models.DateTimeField(blank=True, editable=False, verbose_name="Actualizado en")),
                ("history_id", models.AutoField(primary_key=True, serialize=False)),
                ("history_date", models.DateTimeField(db_index=True)),
                ("history_change_reason", models.CharField(max_length=100, null=True)),
                ("history_type", models.CharField(choices=HISTORY_TYPES, max_length=1)),
                (
                    "history_user",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "work_order",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="rentalman.workorder",
                        verbose_name="Orden de Trabajo",
                    ),
                ),
                (
                    "resolved_by",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="Resuelta por",
                    ),
                ),
            ],
            options={
                "verbose_name": "historical Alerta",
                "verbose_name_plural": "historical Alertas",
                "ordering": ("-history_date", "-history_id"),
                "get_latest_by": ("history_date", "history_id"),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
    ]
