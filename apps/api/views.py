"""REST API views."""

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.services import validate_admin
from apps.attendance import services as attendance
from apps.attendance.models import Shift
from apps.core.months import current_month_key, month_bounds, parse_month
from apps.expenses import services as expenses
from apps.expenses.models import ExpenseReport

from .permissions import IsTimeclockAdmin
from .serializers import (
    ActiveShiftSerializer,
    CheckOutSerializer,
    ExpenseReportSerializer,
    ReviewSerializer,
    ShiftSerializer,
    UserSerializer,
)


def _month(request: Request) -> tuple[int, int] | None:
    """The ?month=YYYY-MM query parameter; None if it is invalid."""
    try:
        return parse_month(request.query_params.get("month") or current_month_key())
    except ValueError:
        return None


def _bad_month() -> Response:
    return Response({"detail": "month must be YYYY-MM"}, status=status.HTTP_400_BAD_REQUEST)


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request: Request) -> Response:
    """Health check endpoint."""
    return Response({"status": "healthy", "service": "timeclock"})


class MeView(APIView):
    """GET /api/v1/me/ - The authenticated user."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        return Response(UserSerializer(request.user).data)


class ShiftListView(APIView):
    """
    GET /api/v1/shifts/?month=YYYY-MM - Own shifts for a month.

    Admins may pass user=<id> for another user or all=1 for everyone.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        month = _month(request)
        if month is None:
            return _bad_month()
        year, mon = month

        user_id = request.query_params.get("user")
        want_all = request.query_params.get("all") in ("1", "true")

        if user_id and not user_id.isdigit():
            return Response({"detail": "user must be a user id"}, status=status.HTTP_400_BAD_REQUEST)
        if (user_id or want_all) and not validate_admin(request.user):
            return Response({"detail": "Admin rights required."}, status=status.HTTP_403_FORBIDDEN)

        if want_all:
            shifts = list(attendance.shifts_for_month(year, mon))
        elif user_id and str(user_id) != str(request.user.pk):
            target = get_object_or_404(get_user_model(), pk=user_id)
            first, last = month_bounds(year, mon)
            shifts = list(Shift.objects.filter(user=target, date__range=(first, last)).order_by("date"))
        else:
            shifts = attendance.shifts_for_user(request.user, year, mon)

        data = ShiftSerializer(shifts, many=True).data
        stats = attendance.month_stats(shifts)
        return Response({
            "count": len(data),
            "total_minutes": stats.total_minutes,
            "results": data,
        })


class CheckInView(APIView):
    """POST /api/v1/shifts/check-in/ - Start a shift now."""
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        try:
            active = attendance.check_in(request.user)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response(ActiveShiftSerializer(active).data, status=status.HTTP_201_CREATED)


class CheckOutView(APIView):
    """POST /api/v1/shifts/check-out/ - End the current shift."""
    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        serializer = CheckOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            if "note" in data or "day_type" in data:
                active = attendance.get_active_shift(request.user)
                if active is not None:
                    attendance.update_active_details(
                        request.user,
                        data.get("note", active.note),
                        data.get("day_type", active.day_type),
                    )
            shift = attendance.check_out(request.user, break_minutes=data["break_minutes"])
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response(ShiftSerializer(shift).data, status=status.HTTP_201_CREATED)


class ActiveShiftListView(APIView):
    """GET /api/v1/active-shifts/ - Everyone checked in now (admin)."""
    permission_classes = [IsAuthenticated, IsTimeclockAdmin]

    def get(self, request: Request) -> Response:
        now = timezone.now()
        rows = attendance.live_shifts(now)
        data = ActiveShiftSerializer([r["active"] for r in rows], many=True, context={"now": now}).data
        return Response({"count": len(data), "results": data})


class ExpenseReportListView(APIView):
    """GET /api/v1/expense-reports/?month=YYYY-MM - Own reports, or all for admins."""
    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        reports = ExpenseReport.objects.select_related("reviewed_by").prefetch_related("items")
        if not validate_admin(request.user):
            reports = reports.filter(user=request.user)

        month = request.query_params.get("month")
        if month:
            try:
                parse_month(month)
            except ValueError:
                return _bad_month()
            reports = reports.filter(month=month)

        data = ExpenseReportSerializer(reports, many=True).data
        return Response({"count": len(data), "results": data})


class _ReviewView(APIView):
    permission_classes = [IsAuthenticated, IsTimeclockAdmin]
    review_action = None

    def post(self, request: Request, pk: int) -> Response:
        report = get_object_or_404(ExpenseReport, pk=pk)
        serializer = ReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.review_action(request.user, report, serializer.validated_data["note"])
        except PermissionDenied:
            return Response({"detail": "Admin rights required."}, status=status.HTTP_403_FORBIDDEN)
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)

        return Response(ExpenseReportSerializer(report).data)


class ExpenseReportApproveView(_ReviewView):
    """POST /api/v1/expense-reports/<id>/approve/"""
    review_action = staticmethod(expenses.approve_report)


class ExpenseReportRejectView(_ReviewView):
    """POST /api/v1/expense-reports/<id>/reject/"""
    review_action = staticmethod(expenses.reject_report)
