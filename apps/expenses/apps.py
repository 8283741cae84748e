"""Django app configuration for expenses app."""

from django.apps import AppConfig


class ExpensesConfig(AppConfig):
    """Configuration for the expense reports application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.expenses"
    verbose_name = "Expenses"
