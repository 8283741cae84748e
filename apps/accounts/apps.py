"""Django app configuration for accounts app."""

from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """Configuration for the accounts (users and sessions) application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.accounts"
    verbose_name = "Accounts"

    def ready(self):
        """Initialize app when Django starts."""
        # Import signals here to ensure they're registered
        from . import signals  # noqa: F401
