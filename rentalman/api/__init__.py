"""
Rentalman REST API.

Provides DRF ViewSets for:
- EquipmentItem (read-only + availability)
- WorkOrder (read-only + validate-date, change-date)
- Alert (read-only + pending, summary, resolve, escalate)
"""
