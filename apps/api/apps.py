"""Django app configuration for api app."""

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """Configuration for the REST API application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.api"
    verbose_name = "REST API"
