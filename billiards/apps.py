# billiards/apps.py

import logging

from django.apps import AppConfig


class BilliardsConfig(AppConfig):
    """App configuration for the billiard hall table and session app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'billiards'
    verbose_name = "Billiard Hall"

    def ready(self):
        """Bind signal receivers once the app registry is loaded."""
        import billiards.signals  # noqa: F401  # Import solely for side effects
        logging.getLogger(__name__).debug("billiards.signals module loaded.")
