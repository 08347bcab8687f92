"""
Django Rentalman app configuration.
"""

from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class RentalmanConfig(AppConfig):
    """Rentalman application configuration."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "rentalman"
    verbose_name = _("Operaciones de Alquiler")

    def ready(self):
        """Import signal handlers when app is ready."""
        # Import handlers to register them
        from rentalman.signals import handlers  # noqa: F401
