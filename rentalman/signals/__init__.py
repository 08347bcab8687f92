"""
Rentalman Signals.

All communication with surrounding apps happens via signals.
This ensures decoupling and allows for easy testing.

Signals:
    date_change_validated: A date change was evaluated
    work_order_rescheduled: A work order date was changed
    work_order_closed: A work order was completed or cancelled
    alert_recorded: An alert was created
    alert_resolved: An alert was resolved or discarded
    alert_escalated: An alert was escalated
"""

from django.dispatch import Signal

# Sent by ConflictDetector.validate_date_change()
# Args: report
date_change_validated = Signal()

# Sent by WorkOrder.reschedule()
# Args: work_order, previous_date, new_date, forced
work_order_rescheduled = Signal()

# Sent by WorkOrder.set_status() when the order closes
# Args: work_order, status
work_order_closed = Signal()

# Sent by AlertRecorder.record()
# Args: alert
alert_recorded = Signal()

# Sent by Alert.resolve()
# Args: alert, outcome, user
alert_resolved = Signal()

# Sent by Alert.escalate()
# Args: alert, previous_severity
alert_escalated = Signal()

__all__ = [
    "date_change_validated",
    "work_order_rescheduled",
    "work_order_closed",
    "alert_recorded",
    "alert_resolved",
    "alert_escalated",
]
