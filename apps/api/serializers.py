"""
Serializers for the REST API.

Output serializers are read-only; writes go through the attendance and
expenses services.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from apps.attendance.models import ActiveShift, DayType, Shift
from apps.expenses.models import ExpenseItem, ExpenseReport


class UserSerializer(serializers.ModelSerializer):
    """The authenticated user."""

    is_admin = serializers.BooleanField(source="has_admin_rights", read_only=True)
    is_primary_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = get_user_model()
        fields = ["id", "email", "name", "department", "is_admin", "is_primary_admin", "created_at"]
        read_only_fields = fields


class ShiftSerializer(serializers.ModelSerializer):
    """A shift, from the database or the per-user store."""

    class Meta:
        model = Shift
        fields = [
            "id",
            "user",
            "user_name",
            "date",
            "check_in",
            "check_out",
            "note",
            "duration",
            "break_minutes",
            "updated_at",
        ]
        read_only_fields = fields


class ActiveShiftSerializer(serializers.ModelSerializer):
    day_type_display = serializers.CharField(source="get_day_type_display", read_only=True)
    elapsed_minutes = serializers.SerializerMethodField()

    class Meta:
        model = ActiveShift
        fields = ["user", "user_name", "check_in", "note", "day_type", "day_type_display", "elapsed_minutes"]
        read_only_fields = fields

    def get_elapsed_minutes(self, obj) -> int:
        now = self.context.get("now")
        return obj.elapsed_minutes(now)


class CheckOutSerializer(serializers.Serializer):
    """Input for POST /api/v1/shifts/check-out/."""

    break_minutes = serializers.IntegerField(min_value=0, required=False, default=0)
    note = serializers.CharField(required=False, allow_blank=True)
    day_type = serializers.ChoiceField(choices=DayType.choices, required=False)


class ExpenseItemSerializer(serializers.ModelSerializer):
    invoice = serializers.FileField(read_only=True, use_url=True)

    class Meta:
        model = ExpenseItem
        fields = ["id", "currency", "quantity", "description", "unit_price", "line_total", "invoice", "sort_order"]
        read_only_fields = fields


class ExpenseReportSerializer(serializers.ModelSerializer):
    """Expense report with its items."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    reviewed_by_email = serializers.CharField(source="reviewed_by.email", read_only=True, allow_null=True)
    items = ExpenseItemSerializer(many=True, read_only=True)

    class Meta:
        model = ExpenseReport
        fields = [
            "id",
            "user",
            "user_name",
            "month",
            "expense_period",
            "checked_by",
            "approved_by",
            "exchange_rate_usd",
            "exchange_rate_eur",
            "total_nis",
            "total_usd",
            "total_usd_in_nis",
            "total_eur",
            "total_eur_in_nis",
            "grand_total_nis",
            "status",
            "status_display",
            "reviewed_by",
            "reviewed_by_email",
            "reviewed_at",
            "review_note",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReviewSerializer(serializers.Serializer):
    """Input for approve/reject."""

    note = serializers.CharField(required=False, allow_blank=True, default="")
