"""
Views for the time clock: check-in/out, history, manual entry and the
admin shift pages.
"""

import calendar
import logging

from django.contrib import messages
from django.contrib.auth import get_user_model
from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_time
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from apps.accounts.decorators import admin_required
from apps.accounts.services import validate_admin
from apps.core.months import current_month_key, month_key, parse_month, shift_month

from . import services
from .exports import shifts_pdf_response, shifts_xlsx_response
from .models import DayType, Shift

logger = logging.getLogger(__name__)

User = get_user_model()


def _month_from_request(request: HttpRequest) -> tuple[int, int]:
    """The ?month=YYYY-MM parameter, or the current month if missing or invalid."""
    try:
        return parse_month(request.GET.get("month") or current_month_key())
    except ValueError:
        return parse_month(current_month_key())


def _month_nav(year: int, month: int) -> dict:
    return {
        "month": month_key(year, month),
        "month_label": f"{calendar.month_name[month]} {year}",
        "prev_month": month_key(*shift_month(year, month, -1)),
        "next_month": month_key(*shift_month(year, month, 1)),
    }


def _activity_url(month: str) -> str:
    url = reverse("attendance:activity")
    return f"{url}?month={month}" if month else url


def _after_change_url(request: HttpRequest, shift: Shift) -> str:
    """Admins editing someone else's shift go back to the month review."""
    if shift.user_id != request.user.pk:
        return f"{reverse('attendance:admin_shifts')}?month={shift.date:%Y-%m}"
    return reverse("attendance:home")


def _clock_time(value: str):
    """HH:MM to a time, or None when empty or invalid."""
    try:
        return parse_time((value or "").strip())
    except ValueError:
        return None


def _minutes(value: str) -> int:
    value = (value or "").strip()
    if not value:
        return 0
    minutes = int(value)
    if minutes < 0:
        raise ValueError("Break cannot be negative")
    return minutes


# =============================================================================
# Home: check-in / check-out
# =============================================================================

def _home_context(request: HttpRequest) -> dict:
    today = timezone.localdate()
    shifts = services.shifts_for_user(request.user, today.year, today.month)
    return {
        "active": services.get_active_shift(request.user),
        "shifts": shifts,
        "stats": services.month_stats(shifts),
        "day_types": DayType.choices,
        **_month_nav(today.year, today.month),
    }


@login_required
@require_GET
def home_view(request: HttpRequest) -> HttpResponse:
    """Check-in status, the current month's stats and history."""
    return render(request, "attendance/home.html", _home_context(request))


@login_required
@require_POST
def check_in_view(request: HttpRequest) -> HttpResponse:
    try:
        services.check_in(request.user)
    except ValueError as exc:
        messages.error(request, str(exc))
    return redirect("attendance:home")


@login_required
@require_POST
def check_out_view(request: HttpRequest) -> HttpResponse:
    try:
        shift = services.check_out(request.user, break_minutes=_minutes(request.POST.get("break_minutes")))
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, f"Checked out. Worked {shift.duration // 60}h {shift.duration % 60}m.")
    return redirect("attendance:home")


@login_required
@require_POST
def sick_day_view(request: HttpRequest) -> HttpResponse:
    try:
        services.record_sick_day(request.user)
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, "Sick day recorded.")
    return redirect("attendance:home")


@login_required
@require_POST
def active_details(request: HttpRequest) -> HttpResponse:
    """HTMX endpoint that saves the in-progress note and day type."""
    errors = []
    try:
        services.update_active_details(
            request.user,
            request.POST.get("note", ""),
            request.POST.get("day_type", DayType.OFFICE),
        )
    except ValueError as exc:
        errors.append(str(exc))

    if request.htmx:
        return render(request, "attendance/partials/_active_details.html", {
            "active": services.get_active_shift(request.user),
            "day_types": DayType.choices,
            "errors": errors,
            "saved": not errors,
        })
    for error in errors:
        messages.error(request, error)
    return redirect("attendance:home")


# =============================================================================
# Activity: calendar, bulk fill and delete-by-dates
# =============================================================================

@login_required
@require_GET
def activity_view(request: HttpRequest) -> HttpResponse:
    """Month calendar with the user's existing shifts."""
    year, month = _month_from_request(request)
    shifts = services.shifts_for_user(request.user, year, month)
    by_date = {s.date: s for s in shifts}
    today = timezone.localdate()

    weeks = [
        [
            {
                "date": day,
                "in_month": day.month == month,
                "shift": by_date.get(day),
                "is_future": day > today,
            }
            for day in week
        ]
        for week in calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month)
    ]

    return render(request, "attendance/activity.html", {
        "weeks": weeks,
        "shifts": shifts,
        "stats": services.month_stats(shifts),
        "day_types": DayType.choices,
        **_month_nav(year, month),
    })


def _selected_dates(request: HttpRequest) -> list:
    dates = []
    for value in request.POST.getlist("dates"):
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"Invalid date '{value}'")
        dates.append(parsed)
    return dates


@login_required
@require_POST
def activity_fill(request: HttpRequest) -> HttpResponse:
    """Create or overwrite shifts on the selected days."""
    month = request.POST.get("month", "")
    try:
        check_in = parse_time(request.POST.get("check_in", ""))
        check_out = parse_time(request.POST.get("check_out", ""))
        if check_in is None or check_out is None:
            raise ValueError("Check-in and check-out times are required")
        day_type = request.POST.get("day_type", DayType.OFFICE)
        if day_type not in DayType.values:
            raise ValueError(f"Unknown day type '{day_type}'")
        saved = services.bulk_fill(
            request.user,
            _selected_dates(request),
            check_in,
            check_out,
            day_type=day_type,
            note=request.POST.get("note", ""),
            break_minutes=_minutes(request.POST.get("break_minutes")),
        )
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, f"Saved {len(saved)} day(s).")

    return redirect(_activity_url(month))


@login_required
@require_POST
def activity_delete(request: HttpRequest) -> HttpResponse:
    """Delete the user's shifts on the selected days."""
    month = request.POST.get("month", "")
    try:
        deleted = services.delete_shifts_by_dates(request.user, _selected_dates(request))
    except ValueError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, f"Deleted {deleted} shift(s).")

    return redirect(_activity_url(month))


# =============================================================================
# Shift edit / delete
# =============================================================================

def _editable_shift(request: HttpRequest, pk) -> Shift | None:
    shift = get_object_or_404(Shift.objects.select_related("user"), pk=pk)
    if not services.can_modify_shift(request.user, shift):
        messages.error(request, "You can only change your own shifts.")
        return None
    return shift


@login_required
@require_http_methods(["GET", "POST"])
def shift_edit(request: HttpRequest, pk) -> HttpResponse:
    """Edit times, break and note of a shift. The date stays fixed."""
    shift = _editable_shift(request, pk)
    if shift is None:
        return redirect("attendance:home")

    if request.method == "POST":
        check_in = _clock_time(request.POST.get("check_in", ""))
        check_out_raw = request.POST.get("check_out", "").strip()
        check_out = _clock_time(check_out_raw)
        note = request.POST.get("note", "").strip()

        errors = []
        if check_in is None:
            errors.append("Check-in time is required")
        if check_out_raw and check_out is None:
            errors.append("Invalid check-out time")
        try:
            break_minutes = _minutes(request.POST.get("break_minutes"))
        except ValueError:
            errors.append("Break must be a whole number of minutes")
            break_minutes = 0

        if not errors:
            services.edit_shift(shift, check_in, check_out, note, break_minutes)
            messages.success(request, "Shift updated.")
            return redirect(_after_change_url(request, shift))

        return render(request, "attendance/shift_form.html", {
            "shift": shift,
            "errors": errors,
            "check_in": request.POST.get("check_in", ""),
            "check_out": check_out_raw,
            "break_minutes": request.POST.get("break_minutes", ""),
            "note": note,
        })

    return render(request, "attendance/shift_form.html", {
        "shift": shift,
        "check_in": timezone.localtime(shift.check_in).strftime("%H:%M"),
        "check_out": timezone.localtime(shift.check_out).strftime("%H:%M") if shift.check_out else "",
        "break_minutes": shift.break_minutes or "",
        "note": shift.note,
    })


@login_required
@require_POST
def shift_delete(request: HttpRequest, pk) -> HttpResponse:
    shift = _editable_shift(request, pk)
    if shift is not None:
        services.delete_shift(shift)
        messages.success(request, "Shift deleted.")
    return redirect(_after_change_url(request, shift) if shift is not None else reverse("attendance:home"))


# =============================================================================
# Admin: month review, export and live view
# =============================================================================

@admin_required
@require_GET
def admin_shifts(request: HttpRequest) -> HttpResponse:
    """All users' shifts for a month, grouped by user."""
    year, month = _month_from_request(request)
    groups = services.shifts_by_user(year, month)
    all_shifts = [s for g in groups for s in g["shifts"]]
    return render(request, "attendance/admin_shifts.html", {
        "groups": groups,
        "stats": services.month_stats(all_shifts),
        **_month_nav(year, month),
    })


@login_required
@require_GET
def shifts_pdf(request: HttpRequest) -> HttpResponse:
    """
    Monthly attendance report as PDF. Admins may pass ?user=<id> to export
    another employee's month.
    """
    year, month = _month_from_request(request)
    employee = request.user
    user_id = request.GET.get("user")
    if user_id and str(user_id) != str(request.user.pk):
        if not validate_admin(request.user):
            messages.error(request, "You are not authorized to export that report.")
            return redirect("attendance:home")
        if not user_id.isdigit():
            messages.error(request, "Unknown user.")
            return redirect("attendance:admin_shifts")
        employee = get_object_or_404(User, pk=user_id)

    shifts = services.shifts_for_user(employee, year, month)
    if not shifts:
        messages.info(request, f"No shifts to export for {calendar.month_name[month]} {year}.")
        return redirect("attendance:home")

    logger.info("User %s exported the %s attendance PDF of user %s", request.user.pk, month_key(year, month), employee.pk)
    return shifts_pdf_response(shifts, employee.name, year, month)


@admin_required
@require_GET
def admin_shifts_export(request: HttpRequest) -> HttpResponse:
    year, month = _month_from_request(request)
    shifts = list(services.shifts_for_month(year, month))
    logger.info("User %s exported %d shifts for %s", request.user.pk, len(shifts), month_key(year, month))
    return shifts_xlsx_response(shifts, year, month)


@admin_required
@require_GET
def live_view(request: HttpRequest) -> HttpResponse:
    """Who is checked in right now."""
    return render(request, "attendance/live.html", {"rows": services.live_shifts()})


@admin_required
@require_GET
def live_rows(request: HttpRequest) -> HttpResponse:
    """Partial view returning just the live rows for HTMX polling."""
    return render(request, "attendance/partials/_live_rows.html", {"rows": services.live_shifts()})
