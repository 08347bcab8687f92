"""
Rentalman Signal Handlers.

This module is imported in apps.py to register handlers.
"""

import logging

from django.dispatch import receiver

from rentalman.signals import work_order_closed

logger = logging.getLogger(__name__)


@receiver(work_order_closed)
def discard_alerts_of_closed_order(sender, work_order, status, **kwargs):
    """
    When a work order closes, its pending alerts no longer apply.

    The order's commitments stopped counting toward occupancy, so the
    conflicts they described are gone.

    Escalated alerts stay escalada: only a pendiente alert can be
    resolved, and an escalated one is already in someone's hands. They
    get a note saying the order closed so whoever holds them can close
    them out. Resolved and discarded alerts are not touched.
    """
    from rentalman.models import AlertStatus

    pending = list(work_order.alerts.filter(status=AlertStatus.PENDING))
    for alert in pending:
        alert.resolve(
            notes=f"Orden {work_order.code} cerrada ({status})",
            outcome=AlertStatus.DISCARDED,
        )

    escalated = list(work_order.alerts.filter(status=AlertStatus.ESCALATED))
    for alert in escalated:
        alert.resolution_notes = (
            f"{alert.resolution_notes}\n[ORDEN CERRADA] {work_order.code} ({status})".strip()
        )
        alert.save(update_fields=["resolution_notes", "updated_at"])

    if pending or escalated:
        logger.info(
            f"Closed WorkOrder {work_order.code}: discarded {len(pending)} pending alert(s), "
            f"flagged {len(escalated)} escalated",
            extra={
                "work_order": work_order.code,
                "status": status,
                "alerts": [a.pk for a in pending],
                "escalated": [a.pk for a in escalated],
            },
        )
