"""
Attendance operations: check-in/out, manual entry and month summaries.

Per-user reads and writes go through ShiftStore. Admin views that span all
users read the database directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from django.conf import settings
from django.utils import timezone

from apps.core.months import format_minutes, month_bounds

from .models import ActiveShift, DayType, Shift
from .storage import ShiftStore

logger = logging.getLogger(__name__)

# Prefix added to a check-out note for each day type; office adds nothing
DAY_TYPE_NOTES = {
    DayType.OFFICE: "",
    DayType.HOME: "Work from Home",
    DayType.SICK: "Sick Day",
    DayType.OTHER: "Other",
}

SICK_DAY_NOTE = "Sick at home"


# =============================================================================
# Calculations
# =============================================================================

def calculate_duration(check_in: datetime, check_out: datetime | None) -> int:
    """Whole minutes between check-in and check-out, rounded."""
    if check_out is None:
        return 0
    return round((check_out - check_in).total_seconds() / 60)


def net_duration(gross_minutes: int, break_minutes: int | None) -> int:
    return max(0, gross_minutes - (break_minutes or 0))


def build_note(day_type: str, note: str = "") -> str:
    """Compose the stored note: day type label (unless office), then the user note."""
    label = DAY_TYPE_NOTES.get(day_type, "")
    note = (note or "").strip()
    if label and note:
        return f"{label} | {note}"
    return label or note


def _local_date(moment: datetime) -> date:
    return timezone.localtime(moment).date()


def _combine(day: date, clock: time) -> datetime:
    return timezone.make_aware(datetime.combine(day, clock))


@dataclass
class MonthStats:
    total_shifts: int
    total_minutes: int
    average_minutes: int

    @property
    def total_hours(self) -> str:
        return format_minutes(self.total_minutes)

    @property
    def average_shift(self) -> str:
        return format_minutes(self.average_minutes)


def month_stats(shifts) -> MonthStats:
    shifts = list(shifts)
    total = sum(s.duration for s in shifts)
    average = round(total / len(shifts)) if shifts else 0
    return MonthStats(total_shifts=len(shifts), total_minutes=total, average_minutes=average)


# =============================================================================
# Check-in / check-out
# =============================================================================

def get_active_shift(user) -> ActiveShift | None:
    return ShiftStore(user).get_active_shift()


def check_in(user, now: datetime | None = None) -> ActiveShift:
    store = ShiftStore(user)
    if store.get_active_shift() is not None:
        raise ValueError("Already checked in")

    active = ActiveShift(
        user_id=user.pk,
        user_name=user.name,
        check_in=now or timezone.now(),
        day_type=DayType.OFFICE,
    )
    store.set_active_shift(active)
    logger.info("User %s checked in at %s", user.pk, active.check_in.isoformat())
    return active


def update_active_details(user, note: str, day_type: str) -> ActiveShift:
    """Persist the in-progress note and day type."""
    store = ShiftStore(user)
    active = store.get_active_shift()
    if active is None:
        raise ValueError("Not checked in")
    if day_type not in DayType.values:
        raise ValueError(f"Unknown day type '{day_type}'")

    active.note = (note or "").strip()
    active.day_type = day_type
    store.set_active_shift(active)
    return active


def check_out(user, break_minutes: int = 0, now: datetime | None = None) -> Shift:
    store = ShiftStore(user)
    active = store.get_active_shift()
    if active is None:
        raise ValueError("Not checked in")
    if break_minutes < 0:
        raise ValueError("Break cannot be negative")

    now = now or timezone.now()
    gross = calculate_duration(active.check_in, now)
    shift = Shift(
        user_id=user.pk,
        user_name=user.name,
        date=_local_date(active.check_in),
        check_in=active.check_in,
        check_out=now,
        note=build_note(active.day_type, active.note),
        duration=net_duration(gross, break_minutes),
        break_minutes=break_minutes if break_minutes > 0 else None,
    )
    saved = store.add_shift(shift)
    store.set_active_shift(None)
    logger.info("User %s checked out after %d minutes", user.pk, saved.duration)
    return saved


def record_sick_day(user) -> Shift:
    """End the current shift as a full sick day."""
    store = ShiftStore(user)
    active = store.get_active_shift()
    if active is None:
        raise ValueError("Not checked in")

    hours = settings.SICK_DAY_HOURS
    shift = Shift(
        user_id=user.pk,
        user_name=user.name,
        date=_local_date(active.check_in),
        check_in=active.check_in,
        check_out=active.check_in + timedelta(hours=hours),
        note=SICK_DAY_NOTE,
        duration=hours * 60,
    )
    saved = store.add_shift(shift)
    store.set_active_shift(None)
    logger.info("User %s recorded a sick day on %s", user.pk, saved.date)
    return saved


# =============================================================================
# Manual entry
# =============================================================================

def bulk_fill(
    user,
    dates,
    check_in_time: time,
    check_out_time: time,
    day_type: str = DayType.OFFICE,
    note: str = "",
    break_minutes: int = 0,
) -> list[Shift]:
    """Create or overwrite one shift per date with the same times."""
    dates = sorted(set(dates))
    if not dates:
        raise ValueError("Select at least one day")
    today = timezone.localdate()
    future = [d for d in dates if d > today]
    if future:
        raise ValueError(f"Cannot fill future dates: {', '.join(d.isoformat() for d in future)}")
    if check_out_time <= check_in_time:
        raise ValueError("Check-out must be after check-in")

    note = (note or "").strip()
    if day_type != DayType.OFFICE:
        note = f"[{day_type}] {note}".strip()

    store = ShiftStore(user)
    saved = []
    for day in dates:
        start = _combine(day, check_in_time)
        end = _combine(day, check_out_time)
        shift = Shift(
            user_id=user.pk,
            user_name=user.name,
            date=day,
            check_in=start,
            check_out=end,
            note=note,
            duration=net_duration(calculate_duration(start, end), break_minutes),
            break_minutes=break_minutes if break_minutes > 0 else None,
        )
        saved.append(store.add_shift(shift))

    logger.info("User %s filled %d days", user.pk, len(saved))
    return saved


def edit_shift(
    shift: Shift,
    check_in_time: time,
    check_out_time: time | None,
    note: str,
    break_minutes: int | None = None,
) -> Shift:
    """Change the times and note of a shift. The date stays the same."""
    shift.check_in = _combine(shift.date, check_in_time)
    if check_out_time is not None:
        check_out = _combine(shift.date, check_out_time)
        if check_out < shift.check_in:
            # Past midnight
            check_out += timedelta(days=1)
        shift.check_out = check_out
    else:
        shift.check_out = None

    shift.break_minutes = break_minutes if break_minutes else None
    shift.duration = net_duration(calculate_duration(shift.check_in, shift.check_out), break_minutes) if shift.check_out else 0
    shift.note = (note or "").strip()

    owner = shift.user
    return ShiftStore(owner).update_shift(shift)


def can_modify_shift(user, shift: Shift) -> bool:
    return shift.user_id == user.pk or user.has_admin_rights


def delete_shift(shift: Shift) -> None:
    ShiftStore(shift.user).delete_shift(shift.pk)
    logger.info("Deleted shift %s of user %s", shift.pk, shift.user_id)


def delete_shifts_by_dates(user, dates) -> int:
    return ShiftStore(user).delete_shifts_by_dates(dates)


# =============================================================================
# Reads
# =============================================================================

def shifts_for_user(user, year: int, month: int) -> list[Shift]:
    return ShiftStore(user).shifts_for_month(year, month)


def shifts_for_month(year: int, month: int):
    """All users' shifts in a month, from the database."""
    first, last = month_bounds(year, month)
    return (
        Shift.objects.filter(date__range=(first, last))
        .select_related("user")
        .order_by("user__name", "date")
    )


def shifts_by_user(year: int, month: int) -> list[dict]:
    """Month shifts grouped per user with per-user stats, by current name."""
    groups: dict[int, dict] = {}
    for shift in shifts_for_month(year, month):
        group = groups.setdefault(shift.user_id, {"user": shift.user, "shifts": []})
        group["shifts"].append(shift)
    for group in groups.values():
        group["stats"] = month_stats(group["shifts"])
    return sorted(groups.values(), key=lambda g: g["user"].name.lower())


def live_shifts(now: datetime | None = None) -> list[dict]:
    """Everyone checked in right now, newest check-in first."""
    now = now or timezone.now()
    return [
        {"active": active, "elapsed_minutes": active.elapsed_minutes(now)}
        for active in ActiveShift.objects.select_related("user").order_by("-check_in")
    ]
