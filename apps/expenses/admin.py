"""Django admin configuration for expenses app."""

from django.contrib import admin

from .models import ExpenseItem, ExpenseReport, ExpenseStatusLog


class ExpenseItemInline(admin.TabularInline):
    model = ExpenseItem
    extra = 0
    fields = ["sort_order", "currency", "quantity", "description", "unit_price", "line_total", "invoice"]
    readonly_fields = ["line_total"]


@admin.register(ExpenseReport)
class ExpenseReportAdmin(admin.ModelAdmin):
    """Admin for expense reports."""
    list_display = ["month", "user_name", "status", "grand_total_nis", "reviewed_by", "updated_at"]
    list_filter = ["status", "month"]
    search_fields = ["user_name", "user__email"]
    readonly_fields = [
        "total_nis", "total_usd", "total_usd_in_nis", "total_eur", "total_eur_in_nis",
        "grand_total_nis", "reviewed_by", "reviewed_at", "created_at", "updated_at",
    ]
    inlines = [ExpenseItemInline]
    ordering = ["-month", "user_name"]


@admin.register(ExpenseStatusLog)
class ExpenseStatusLogAdmin(admin.ModelAdmin):
    """Admin for viewing status logs (read-only)."""
    list_display = ["changed_at", "report", "old_status", "new_status", "changed_by"]
    list_filter = ["new_status", "changed_at"]
    search_fields = ["report__user_name", "note"]
    readonly_fields = ["report", "changed_by", "changed_at", "old_status", "new_status", "note"]
    ordering = ["-changed_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
