"""Django admin configuration for attendance app."""

from django.contrib import admin

from .models import ActiveShift, Shift


@admin.register(Shift)
class ShiftAdmin(admin.ModelAdmin):
    """Admin for shifts. Edits here bypass the per-user cache."""
    list_display = ["date", "user_name", "check_in", "check_out", "duration", "break_minutes", "note"]
    list_filter = ["date", "user"]
    search_fields = ["user_name", "user__email", "note"]
    readonly_fields = ["id", "created_at", "updated_at"]
    date_hierarchy = "date"
    ordering = ["-date", "user_name"]


@admin.register(ActiveShift)
class ActiveShiftAdmin(admin.ModelAdmin):
    """Admin for viewing who is checked in (read-only)."""
    list_display = ["user_name", "check_in", "day_type", "note"]
    readonly_fields = ["user", "user_name", "check_in", "day_type", "note"]
    ordering = ["-check_in"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
