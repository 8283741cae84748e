"""Django app configuration for attendance app."""

from django.apps import AppConfig


class AttendanceConfig(AppConfig):
    """Configuration for the attendance (time clock) application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.attendance"
    verbose_name = "Attendance"
