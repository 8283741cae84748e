"""
Tests for the attendance application.

This module tests:
- Duration and note calculations, month statistics
- Check-in / check-out, sick days, bulk fill and edits
- The per-user ShiftStore (cache + database dual write)
- The monthly xlsx export
- Views, including the HTMX partials and the admin pages

Uses Django TestCase with pytest-django compatibility.
"""

from datetime import date, datetime, time, timedelta
from io import BytesIO
from unittest.mock import patch

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import caches
from django.db import IntegrityError, OperationalError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from openpyxl import load_workbook

from . import services
from .exports import (
    HEADERS,
    build_attendance_pdf,
    build_workbook,
    pdf_note,
    pdf_rows,
    shift_rows,
    shifts_pdf_response,
    summary,
)
from .models import ActiveShift, DayType, Shift
from .storage import (
    ShiftStore,
    active_to_record,
    cleanup_duplicate_shifts,
    merge_shifts,
    record_to_active,
    record_to_shift,
    shift_to_record,
)

User = get_user_model()

PAST_DAY = date(2025, 3, 3)


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_user(email="user@example.com", password="testpass123", name="Test User", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(email=email, password=password, name=name, **kwargs)


def local_dt(day, hour, minute=0):
    """Aware datetime in the project time zone."""
    return timezone.make_aware(datetime(day.year, day.month, day.day, hour, minute))


def create_shift(user, day=PAST_DAY, start=9, hours=8, break_minutes=None, note="", **kwargs):
    """Create and return a completed shift in the database."""
    check_in = local_dt(day, start)
    return Shift.objects.create(
        user=user,
        user_name=user.name,
        date=day,
        check_in=check_in,
        check_out=check_in + timedelta(hours=hours),
        duration=hours * 60 - (break_minutes or 0),
        break_minutes=break_minutes,
        note=note,
        **kwargs,
    )


def record(shift_id, day="2025-03-03", user_id=1, updated_at=None, check_in=None, **kwargs):
    """A cached shift record."""
    return {
        "id": shift_id,
        "user_id": user_id,
        "user_name": "Test User",
        "date": day,
        "check_in": check_in or f"{day}T09:00:00+02:00",
        "check_out": f"{day}T17:00:00+02:00",
        "note": "",
        "duration": 480,
        "break_minutes": None,
        "updated_at": updated_at,
        **kwargs,
    }


def attendance_cache():
    return caches[settings.ATTENDANCE_CACHE_ALIAS]


class CacheIsolationMixin:
    """Start every test with an empty shift store."""

    def setUp(self):
        super().setUp()
        attendance_cache().clear()
        self.addCleanup(attendance_cache().clear)


# =============================================================================
# CALCULATION TESTS
# =============================================================================


class CalculationTests(TestCase):
    """Tests for the pure calculation helpers."""

    def test_calculate_duration_rounds_to_minutes(self):
        start = local_dt(PAST_DAY, 9)

        self.assertEqual(services.calculate_duration(start, start + timedelta(minutes=90, seconds=31)), 91)
        self.assertEqual(services.calculate_duration(start, start + timedelta(minutes=90, seconds=29)), 90)

    def test_calculate_duration_without_check_out_is_zero(self):
        self.assertEqual(services.calculate_duration(local_dt(PAST_DAY, 9), None), 0)

    def test_net_duration_subtracts_break_and_never_goes_negative(self):
        self.assertEqual(services.net_duration(480, 30), 450)
        self.assertEqual(services.net_duration(480, None), 480)
        self.assertEqual(services.net_duration(20, 30), 0)

    def test_build_note_for_office_is_note_only(self):
        self.assertEqual(services.build_note(DayType.OFFICE, " client visit "), "client visit")

    def test_build_note_prefixes_day_type(self):
        self.assertEqual(services.build_note(DayType.HOME, "focus day"), "Work from Home | focus day")
        self.assertEqual(services.build_note(DayType.SICK, ""), "Sick Day")

    def test_month_stats(self):
        user = create_user()
        shifts = [
            create_shift(user, day=date(2025, 3, 3), hours=8),
            create_shift(user, day=date(2025, 3, 4), hours=9),
        ]

        stats = services.month_stats(shifts)

        self.assertEqual(stats.total_shifts, 2)
        self.assertEqual(stats.total_minutes, 1020)
        self.assertEqual(stats.total_hours, "17:00")
        self.assertEqual(stats.average_shift, "8:30")

    def test_month_stats_empty(self):
        stats = services.month_stats([])

        self.assertEqual(stats.total_shifts, 0)
        self.assertEqual(stats.average_minutes, 0)


class ShiftModelTests(TestCase):
    """Tests for Shift and ActiveShift."""

    def test_one_shift_per_user_per_day(self):
        user = create_user()
        create_shift(user)

        with self.assertRaises(IntegrityError):
            create_shift(user)

    def test_elapsed_minutes(self):
        user = create_user()
        start = local_dt(PAST_DAY, 9)
        active = ActiveShift(user=user, user_name=user.name, check_in=start)

        self.assertEqual(active.elapsed_minutes(start + timedelta(hours=2, minutes=15)), 135)
        self.assertEqual(active.elapsed_minutes(start - timedelta(minutes=5)), 0)


# =============================================================================
# CHECK-IN / CHECK-OUT TESTS
# =============================================================================


class CheckInOutTests(CacheIsolationMixin, TestCase):
    """Tests for check_in(), check_out() and record_sick_day()."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.start = local_dt(PAST_DAY, 8, 30)

    def test_check_in_creates_active_shift(self):
        active = services.check_in(self.user, now=self.start)

        self.assertEqual(active.day_type, DayType.OFFICE)
        stored = ActiveShift.objects.get(user=self.user)
        self.assertEqual(stored.check_in, self.start)

    def test_double_check_in_raises(self):
        services.check_in(self.user, now=self.start)

        with self.assertRaisesMessage(ValueError, "Already checked in"):
            services.check_in(self.user)

    def test_check_out_without_check_in_raises(self):
        with self.assertRaisesMessage(ValueError, "Not checked in"):
            services.check_out(self.user)

    def test_check_out_records_net_duration(self):
        services.check_in(self.user, now=self.start)

        shift = services.check_out(self.user, break_minutes=30, now=self.start + timedelta(hours=9))

        self.assertEqual(shift.duration, 510)
        self.assertEqual(shift.break_minutes, 30)
        self.assertEqual(shift.date, PAST_DAY)
        self.assertFalse(ActiveShift.objects.filter(user=self.user).exists())
        self.assertIsNone(services.get_active_shift(self.user))
        self.assertEqual(Shift.objects.get(user=self.user).duration, 510)

    def test_check_out_without_break_stores_null_break(self):
        services.check_in(self.user, now=self.start)

        shift = services.check_out(self.user, now=self.start + timedelta(hours=8))

        self.assertIsNone(shift.break_minutes)
        self.assertEqual(shift.duration, 480)

    def test_check_out_negative_break_raises(self):
        services.check_in(self.user, now=self.start)

        with self.assertRaises(ValueError):
            services.check_out(self.user, break_minutes=-5)

    def test_check_out_uses_active_details_for_note(self):
        services.check_in(self.user, now=self.start)
        services.update_active_details(self.user, "deploy", DayType.HOME)

        shift = services.check_out(self.user, now=self.start + timedelta(hours=8))

        self.assertEqual(shift.note, "Work from Home | deploy")

    def test_update_active_details_rejects_unknown_day_type(self):
        services.check_in(self.user, now=self.start)

        with self.assertRaises(ValueError):
            services.update_active_details(self.user, "", "holiday")

    def test_second_check_out_same_day_overwrites(self):
        services.check_in(self.user, now=self.start)
        first = services.check_out(self.user, now=self.start + timedelta(hours=1))
        services.check_in(self.user, now=self.start + timedelta(hours=2))
        second = services.check_out(self.user, now=self.start + timedelta(hours=5))

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Shift.objects.filter(user=self.user).count(), 1)
        self.assertEqual(Shift.objects.get(user=self.user).duration, 180)

    def test_record_sick_day(self):
        services.check_in(self.user, now=self.start)

        shift = services.record_sick_day(self.user)

        self.assertEqual(shift.duration, settings.SICK_DAY_HOURS * 60)
        self.assertEqual(shift.note, services.SICK_DAY_NOTE)
        self.assertEqual(shift.check_out - shift.check_in, timedelta(hours=settings.SICK_DAY_HOURS))
        self.assertIsNone(services.get_active_shift(self.user))


# =============================================================================
# MANUAL ENTRY TESTS
# =============================================================================


class BulkFillTests(CacheIsolationMixin, TestCase):
    """Tests for bulk_fill()."""

    def setUp(self):
        super().setUp()
        self.user = create_user()

    def test_fills_each_selected_day(self):
        days = [date(2025, 3, 3), date(2025, 3, 4), date(2025, 3, 3)]

        saved = services.bulk_fill(self.user, days, time(9, 0), time(17, 30), break_minutes=30)

        self.assertEqual(len(saved), 2)
        self.assertEqual(Shift.objects.filter(user=self.user).count(), 2)
        self.assertTrue(all(s.duration == 480 for s in Shift.objects.filter(user=self.user)))

    def test_overwrites_existing_day(self):
        existing = create_shift(self.user, day=PAST_DAY, hours=4)

        services.bulk_fill(self.user, [PAST_DAY], time(8, 0), time(16, 0))

        self.assertEqual(Shift.objects.filter(user=self.user).count(), 1)
        shift = Shift.objects.get(user=self.user)
        self.assertEqual(shift.pk, existing.pk)
        self.assertEqual(shift.duration, 480)

    def test_non_office_day_type_prefixes_note(self):
        saved = services.bulk_fill(self.user, [PAST_DAY], time(9, 0), time(17, 0), day_type=DayType.HOME, note="remote")

        self.assertEqual(saved[0].note, "[home] remote")

    def test_rejects_future_dates(self):
        tomorrow = timezone.localdate() + timedelta(days=1)

        with self.assertRaises(ValueError):
            services.bulk_fill(self.user, [tomorrow], time(9, 0), time(17, 0))
        self.assertFalse(Shift.objects.exists())

    def test_rejects_check_out_before_check_in(self):
        with self.assertRaises(ValueError):
            services.bulk_fill(self.user, [PAST_DAY], time(17, 0), time(9, 0))

    def test_rejects_empty_selection(self):
        with self.assertRaises(ValueError):
            services.bulk_fill(self.user, [], time(9, 0), time(17, 0))


class EditShiftTests(CacheIsolationMixin, TestCase):
    """Tests for edit_shift(), delete_shift() and delete_shifts_by_dates()."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.shift = create_shift(self.user)

    def test_edit_recalculates_duration(self):
        services.edit_shift(self.shift, time(10, 0), time(15, 0), "updated", break_minutes=15)

        shift = Shift.objects.get(pk=self.shift.pk)
        self.assertEqual(shift.duration, 285)
        self.assertEqual(shift.break_minutes, 15)
        self.assertEqual(shift.note, "updated")
        self.assertEqual(shift.date, PAST_DAY)

    def test_check_out_before_check_in_rolls_to_next_day(self):
        services.edit_shift(self.shift, time(22, 0), time(2, 0), "")

        shift = Shift.objects.get(pk=self.shift.pk)
        self.assertEqual(shift.duration, 240)
        self.assertEqual(timezone.localtime(shift.check_out).date(), PAST_DAY + timedelta(days=1))

    def test_edit_without_check_out_has_zero_duration(self):
        services.edit_shift(self.shift, time(9, 0), None, "")

        shift = Shift.objects.get(pk=self.shift.pk)
        self.assertIsNone(shift.check_out)
        self.assertEqual(shift.duration, 0)

    def test_edit_updates_store(self):
        store = ShiftStore(self.user)
        store.get_shifts()

        services.edit_shift(self.shift, time(9, 0), time(10, 0), "short")

        self.assertEqual(store.get_shift(self.shift.pk).duration, 60)

    def test_can_modify_shift(self):
        other = create_user(email="other@example.com")
        admin = create_user(email="admin@example.com", is_admin=True)

        self.assertTrue(services.can_modify_shift(self.user, self.shift))
        self.assertTrue(services.can_modify_shift(admin, self.shift))
        self.assertFalse(services.can_modify_shift(other, self.shift))

    def test_delete_shift(self):
        services.delete_shift(self.shift)

        self.assertFalse(Shift.objects.filter(pk=self.shift.pk).exists())
        self.assertIsNone(ShiftStore(self.user).get_shift(self.shift.pk))

    def test_delete_shifts_by_dates(self):
        create_shift(self.user, day=date(2025, 3, 4))
        create_shift(self.user, day=date(2025, 3, 5))

        deleted = services.delete_shifts_by_dates(self.user, [PAST_DAY, date(2025, 3, 5), date(2025, 3, 6)])

        self.assertEqual(deleted, 2)
        self.assertEqual(list(Shift.objects.values_list("date", flat=True)), [date(2025, 3, 4)])


class MonthReadTests(CacheIsolationMixin, TestCase):
    """Tests for the month queries."""

    def setUp(self):
        super().setUp()
        self.alice = create_user(email="alice@example.com", name="alice")
        self.bob = create_user(email="bob@example.com", name="Bob")
        create_shift(self.alice, day=date(2025, 3, 3))
        create_shift(self.bob, day=date(2025, 3, 4))
        create_shift(self.bob, day=date(2025, 4, 1))

    def test_shifts_for_user_filters_month(self):
        shifts = services.shifts_for_user(self.bob, 2025, 3)

        self.assertEqual([s.date for s in shifts], [date(2025, 3, 4)])

    def test_shifts_by_user_groups_and_sorts_by_name(self):
        groups = services.shifts_by_user(2025, 3)

        self.assertEqual([g["user"].name for g in groups], ["alice", "Bob"])
        self.assertEqual(groups[1]["stats"].total_shifts, 1)

    def test_live_shifts_newest_first(self):
        now = timezone.now()
        ActiveShift.objects.create(user=self.alice, user_name="alice", check_in=now - timedelta(hours=3))
        ActiveShift.objects.create(user=self.bob, user_name="Bob", check_in=now - timedelta(hours=1))

        rows = services.live_shifts(now)

        self.assertEqual([r["active"].user_id for r in rows], [self.bob.pk, self.alice.pk])
        self.assertEqual(rows[0]["elapsed_minutes"], 60)


# =============================================================================
# STORE TESTS
# =============================================================================


class RecordConversionTests(TestCase):
    """Tests for the cache record helpers."""

    def test_shift_record_keeps_values(self):
        user = create_user()
        shift = create_shift(user, break_minutes=20, note="n")

        restored = record_to_shift(shift_to_record(shift))

        self.assertEqual(restored.pk, shift.pk)
        self.assertEqual(restored.date, shift.date)
        self.assertEqual(restored.check_in, shift.check_in)
        self.assertEqual(restored.break_minutes, 20)
        self.assertEqual(restored.note, "n")

    def test_active_record_keeps_values(self):
        user = create_user()
        active = ActiveShift(user=user, user_name=user.name, check_in=local_dt(PAST_DAY, 9), day_type=DayType.SICK)

        restored = record_to_active(active_to_record(active))

        self.assertEqual(restored.user_id, user.pk)
        self.assertEqual(restored.check_in, active.check_in)
        self.assertEqual(restored.day_type, DayType.SICK)


class MergeTests(TestCase):
    """Tests for cleanup_duplicate_shifts() and merge_shifts()."""

    def test_cleanup_keeps_latest_per_day(self):
        older = record("a", updated_at="2025-03-03T10:00:00+00:00")
        newer = record("b", updated_at="2025-03-03T12:00:00+00:00")
        other_day = record("c", day="2025-03-04")

        result = cleanup_duplicate_shifts([newer, older, other_day])

        self.assertEqual([r["id"] for r in result], ["c", "b"])

    def test_cleanup_breaks_ties_by_id(self):
        same = "2025-03-03T10:00:00+00:00"

        result = cleanup_duplicate_shifts([record("b", updated_at=same), record("a", updated_at=same)])

        self.assertEqual([r["id"] for r in result], ["b"])

    def test_cleanup_prefers_timestamped_record(self):
        result = cleanup_duplicate_shifts([record("z"), record("a", updated_at="2025-03-03T10:00:00+00:00")])

        self.assertEqual(result[0]["id"], "a")

    def test_merge_remote_wins_ties(self):
        same = "2025-03-03T10:00:00+00:00"

        result = merge_shifts([record("local", updated_at=same)], [record("remote", updated_at=same)])

        self.assertEqual([r["id"] for r in result], ["remote"])

    def test_merge_newer_local_wins(self):
        local = record("local", updated_at="2025-03-03T12:00:00+00:00")
        remote = record("remote", updated_at="2025-03-03T10:00:00+00:00")

        result = merge_shifts([local], [remote])

        self.assertEqual([r["id"] for r in result], ["local"])

    def test_merge_keeps_local_only_records(self):
        result = merge_shifts([record("local", day="2025-03-05")], [record("remote")])

        self.assertEqual(sorted(r["id"] for r in result), ["local", "remote"])


class ShiftStoreTests(CacheIsolationMixin, TestCase):
    """Tests for the dual-write ShiftStore."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.store = ShiftStore(self.user)

    def _new_shift(self, day=PAST_DAY):
        check_in = local_dt(day, 9)
        return Shift(
            user_id=self.user.pk,
            user_name=self.user.name,
            date=day,
            check_in=check_in,
            check_out=check_in + timedelta(hours=8),
            duration=480,
        )

    def test_cold_cache_loads_from_database(self):
        shift = create_shift(self.user)

        records = self.store.get_shifts()

        self.assertEqual([r["id"] for r in records], [str(shift.pk)])
        self.assertIsNotNone(attendance_cache().get(self.store.shifts_key))

    def test_add_shift_writes_cache_and_database_with_same_id(self):
        pending = self._new_shift()

        saved = self.store.add_shift(pending)

        self.assertEqual(saved.pk, pending.pk)
        self.assertTrue(Shift.objects.filter(pk=pending.pk).exists())
        self.assertIsNotNone(self.store.get_shift(pending.pk))

    def test_failed_database_write_is_queued(self):
        self.store.get_shifts()
        with patch.object(Shift.objects, "update_or_create", side_effect=OperationalError("down")) as mocked:
            saved = self.store.add_shift(self._new_shift())

        self.assertEqual(mocked.call_count, settings.ATTENDANCE_SYNC_RETRIES)
        self.assertFalse(Shift.objects.exists())
        self.assertIsNotNone(self.store.get_shift(saved.pk))
        self.assertEqual([entry["op"] for entry in self.store.pending()], ["upsert"])

    def test_transient_failure_is_retried(self):
        self.store.get_shifts()
        real = Shift.objects.update_or_create
        calls = []

        def flaky(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("blip")
            return real(*args, **kwargs)

        with patch.object(Shift.objects, "update_or_create", side_effect=flaky):
            self.store.add_shift(self._new_shift())

        self.assertEqual(len(calls), 2)
        self.assertEqual(Shift.objects.count(), 1)
        self.assertEqual(self.store.pending(), [])

    def test_flush_pending_replays_queued_writes(self):
        self.store.get_shifts()
        with patch.object(Shift.objects, "update_or_create", side_effect=OperationalError("down")):
            saved = self.store.add_shift(self._new_shift())

        remaining = self.store.flush_pending()

        self.assertEqual(remaining, 0)
        self.assertEqual(self.store.pending(), [])
        self.assertTrue(Shift.objects.filter(pk=saved.pk).exists())

    def test_flush_pending_keeps_still_failing_writes(self):
        self.store.get_shifts()
        with patch.object(Shift.objects, "update_or_create", side_effect=OperationalError("down")):
            self.store.add_shift(self._new_shift())
            remaining = self.store.flush_pending()

        self.assertEqual(remaining, 1)
        self.assertEqual(len(self.store.pending()), 1)

    def test_sync_merges_remote_rows_into_cache(self):
        self.store.add_shift(self._new_shift(day=date(2025, 3, 3)))
        remote_only = create_shift(self.user, day=date(2025, 3, 4))

        merged = self.store.sync_from_remote()

        self.assertIn(str(remote_only.pk), [r["id"] for r in merged])
        self.assertEqual(len(merged), 2)

    def test_sync_keeps_local_store_when_database_is_down(self):
        self.store.add_shift(self._new_shift())

        with patch.object(Shift.objects, "filter", side_effect=OperationalError("down")):
            records = self.store.sync_from_remote()

        self.assertEqual(len(records), 1)

    def test_get_shifts_removes_cached_duplicates(self):
        attendance_cache().set(self.store.shifts_key, [
            record("a", user_id=self.user.pk, updated_at="2025-03-03T10:00:00+00:00"),
            record("b", user_id=self.user.pk, updated_at="2025-03-03T11:00:00+00:00"),
        ])

        records = self.store.get_shifts()

        self.assertEqual([r["id"] for r in records], ["b"])
        self.assertEqual(len(attendance_cache().get(self.store.shifts_key)), 1)

    def test_shifts_for_month_returns_model_instances(self):
        self.store.add_shift(self._new_shift(day=date(2025, 3, 3)))
        self.store.add_shift(self._new_shift(day=date(2025, 4, 3)))

        shifts = self.store.shifts_for_month(2025, 3)

        self.assertEqual(len(shifts), 1)
        self.assertIsInstance(shifts[0], Shift)
        self.assertEqual(shifts[0].date, date(2025, 3, 3))

    def test_active_shift_round_trip(self):
        active = ActiveShift(user_id=self.user.pk, user_name=self.user.name, check_in=local_dt(PAST_DAY, 9))

        self.store.set_active_shift(active)

        self.assertEqual(self.store.get_active_shift().check_in, active.check_in)
        self.assertTrue(ActiveShift.objects.filter(user=self.user).exists())

        self.store.set_active_shift(None)

        self.assertIsNone(self.store.get_active_shift())
        self.assertFalse(ActiveShift.objects.filter(user=self.user).exists())

    def test_cached_empty_active_skips_database(self):
        self.store.set_active_shift(None)

        with patch.object(ActiveShift.objects, "filter") as mocked:
            self.assertIsNone(self.store.get_active_shift())

        mocked.assert_not_called()

    def test_cold_active_shift_loads_from_database(self):
        ActiveShift.objects.create(user=self.user, user_name=self.user.name, check_in=local_dt(PAST_DAY, 9))

        self.assertIsNotNone(self.store.get_active_shift())

    def test_evict_clears_user_keys(self):
        self.store.get_shifts()
        self.store.get_active_shift()

        self.store.evict()

        self.assertIsNone(attendance_cache().get(self.store.shifts_key))
        self.assertIsNone(attendance_cache().get(self.store.active_key))

    def _queue_failed_add(self, note="old", hours=4, day=PAST_DAY):
        shift = self._new_shift(day=day)
        shift.note = note
        shift.check_out = shift.check_in + timedelta(hours=hours)
        shift.duration = hours * 60
        with patch.object(Shift.objects, "update_or_create", side_effect=OperationalError("down")):
            return self.store.add_shift(shift)

    def test_newer_write_supersedes_queued_write_for_same_day(self):
        self.store.get_shifts()
        self._queue_failed_add(note="old", hours=4)
        newer = self._new_shift()
        newer.note = "new"

        self.store.add_shift(newer)
        self.assertEqual(self.store.pending(), [])
        records = self.store.sync_from_remote()

        self.assertEqual(list(Shift.objects.values_list("note", "duration")), [("new", 480)])
        self.assertEqual([(r["note"], r["duration"]) for r in records], [("new", 480)])

    def test_delete_by_dates_supersedes_queued_write(self):
        self.store.get_shifts()
        self._queue_failed_add()

        deleted = self.store.delete_shifts_by_dates([PAST_DAY])
        records = self.store.sync_from_remote()

        self.assertEqual(deleted, 1)
        self.assertEqual(records, [])
        self.assertFalse(Shift.objects.exists())

    def test_delete_shift_supersedes_queued_write(self):
        self.store.get_shifts()
        queued = self._queue_failed_add()

        self.store.delete_shift(queued.pk)
        self.store.sync_from_remote()

        self.assertEqual(self.store.pending(), [])
        self.assertFalse(Shift.objects.exists())
        self.assertIsNone(self.store.get_shift(queued.pk))

    def test_queued_write_for_other_day_survives_newer_write(self):
        self.store.get_shifts()
        self._queue_failed_add(day=date(2025, 3, 4))

        self.store.add_shift(self._new_shift(day=PAST_DAY))

        self.assertEqual([e["payload"]["date"] for e in self.store.pending()], ["2025-03-04"])

    def test_newer_write_trims_overlapping_queued_date_delete(self):
        self.store.get_shifts()
        with patch.object(Shift.objects, "filter", side_effect=OperationalError("down")):
            self.store.delete_shifts_by_dates([date(2025, 3, 3), date(2025, 3, 4)])

        self.store.add_shift(self._new_shift(day=date(2025, 3, 3)))

        self.assertEqual(self.store.pending(), [{"op": "delete_dates", "payload": ["2025-03-04"]}])
        self.assertTrue(Shift.objects.filter(date=date(2025, 3, 3)).exists())

    def test_rename_keeps_queued_writes(self):
        self.store.get_shifts()
        self._queue_failed_add()
        self.store._write_active(
            ActiveShift(user_id=self.user.pk, user_name=self.user.name, check_in=local_dt(PAST_DAY, 9))
        )

        self.store.rename("Renamed")

        self.assertEqual([e["payload"]["user_name"] for e in self.store.pending()], ["Renamed"])
        self.assertEqual([r["user_name"] for r in self.store.get_shifts()], ["Renamed"])
        self.assertEqual(self.store.get_active_shift().user_name, "Renamed")

        self.store.flush_pending()

        self.assertEqual(list(Shift.objects.values_list("user_name", flat=True)), ["Renamed"])


# =============================================================================
# EXPORT TESTS
# =============================================================================


class ExportTests(TestCase):
    """Tests for the monthly xlsx export."""

    def setUp(self):
        self.alice = create_user(email="alice@example.com", name="Alice", department="Israel")
        self.bob = create_user(email="bob@example.com", name="Bob")
        create_shift(self.alice, day=date(2025, 3, 3), hours=8, break_minutes=30, note="desk")
        create_shift(self.alice, day=date(2025, 3, 4), hours=9)
        create_shift(self.bob, day=date(2025, 3, 3), hours=6)

    def _shifts(self):
        return list(services.shifts_for_month(2025, 3))

    def test_rows_use_current_user_name(self):
        User.objects.filter(pk=self.alice.pk).update(name="Alice Cohen")

        rows = shift_rows(self._shifts())

        self.assertIn("Alice Cohen", [row[0] for row in rows])

    def test_row_layout(self):
        first = shift_rows(self._shifts())[0]

        self.assertEqual(first[0], "Alice")
        self.assertEqual(first[1], "03/03/2025")
        self.assertEqual(first[2], "09:00")
        self.assertEqual(first[3], "17:00")
        self.assertEqual(first[4], 30)
        self.assertEqual(first[5], "7:30")
        self.assertEqual(first[6], "desk")
        self.assertEqual(first[7], "Israel")

    def test_summary_counts_distinct_user_days(self):
        days, hours = summary(self._shifts())

        self.assertEqual(days, 3)
        self.assertEqual(hours, "22:30")

    def test_workbook_has_headers_and_summary(self):
        ws = build_workbook(self._shifts(), 2025, 3).active
        rows = list(ws.iter_rows(values_only=True))

        self.assertEqual(ws.title, "2025-03")
        self.assertEqual(list(rows[0]), HEADERS)
        labels = {row[0]: row[1] for row in rows if row and row[0]}
        self.assertEqual(labels["Total Working Days"], 3)
        self.assertEqual(labels["Total Working Hours"], "22:30")


class AttendancePdfTests(CacheIsolationMixin, TestCase):
    """Tests for the employee monthly PDF."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        create_shift(self.user, day=date(2025, 3, 3), hours=8, note="desk")
        create_shift(self.user, day=date(2025, 3, 5), hours=7, break_minutes=30)

    def _shifts(self):
        return services.shifts_for_user(self.user, 2025, 3)

    def test_rows_newest_first(self):
        rows = pdf_rows(self._shifts())

        self.assertEqual([row[0] for row in rows], ["05/03/2025", "03/03/2025"])
        self.assertEqual(rows[0][1], "Wed")
        self.assertEqual(rows[0][4], "6h 30m")
        self.assertEqual(rows[0][5], "-")
        self.assertEqual(rows[1][2:6], ["09:00", "17:00", "8h 0m", "desk"])

    def test_note_drops_hebrew_letters(self):
        self.assertEqual(pdf_note("שלום"), "-")
        self.assertEqual(pdf_note("client א visit"), "client  visit")
        self.assertEqual(pdf_note(""), "-")

    def test_builds_pdf(self):
        content = build_attendance_pdf(self._shifts(), "Test <User>", 2025, 3)

        self.assertTrue(content.startswith(b"%PDF"))

    def test_response_filename(self):
        response = shifts_pdf_response(self._shifts(), "Test User", 2025, 3)

        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertIn('filename="attendance_Test_User_March_2025.pdf"', response["Content-Disposition"])


# =============================================================================
# VIEW TESTS
# =============================================================================


class HomeViewTests(CacheIsolationMixin, TestCase):
    """Tests for the check-in/out pages."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.client.login(email="user@example.com", password="testpass123")

    def test_requires_login(self):
        self.client.logout()

        response = self.client.get(reverse("attendance:home"))

        self.assertEqual(response.status_code, 302)

    def test_home_renders(self):
        response = self.client.get(reverse("attendance:home"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "attendance/home.html")

    def test_check_in_and_out(self):
        self.client.post(reverse("attendance:check_in"))
        self.assertTrue(ActiveShift.objects.filter(user=self.user).exists())

        response = self.client.post(reverse("attendance:check_out"), {"break_minutes": "0"})

        self.assertRedirects(response, reverse("attendance:home"))
        self.assertFalse(ActiveShift.objects.filter(user=self.user).exists())
        self.assertEqual(Shift.objects.filter(user=self.user).count(), 1)

    def test_check_in_twice_shows_error(self):
        self.client.post(reverse("attendance:check_in"))

        response = self.client.post(reverse("attendance:check_in"), follow=True)

        self.assertContains(response, "Already checked in")

    def test_check_in_requires_post(self):
        response = self.client.get(reverse("attendance:check_in"))

        self.assertEqual(response.status_code, 405)

    def test_sick_day(self):
        self.client.post(reverse("attendance:check_in"))

        self.client.post(reverse("attendance:sick_day"))

        shift = Shift.objects.get(user=self.user)
        self.assertEqual(shift.duration, settings.SICK_DAY_HOURS * 60)

    def test_active_details_htmx_returns_partial(self):
        self.client.post(reverse("attendance:check_in"))

        response = self.client.post(
            reverse("attendance:active_details"),
            {"note": "on site", "day_type": DayType.OTHER},
            HTTP_HX_REQUEST="true",
        )

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "attendance/partials/_active_details.html")
        active = ActiveShift.objects.get(user=self.user)
        self.assertEqual(active.note, "on site")
        self.assertEqual(active.day_type, DayType.OTHER)

    def test_active_details_without_htmx_redirects(self):
        self.client.post(reverse("attendance:check_in"))

        response = self.client.post(reverse("attendance:active_details"), {"note": "x", "day_type": DayType.HOME})

        self.assertRedirects(response, reverse("attendance:home"))


class ActivityViewTests(CacheIsolationMixin, TestCase):
    """Tests for the activity calendar, bulk fill and delete."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.client.login(email="user@example.com", password="testpass123")

    def test_calendar_renders_month(self):
        create_shift(self.user)

        response = self.client.get(reverse("attendance:activity"), {"month": "2025-03"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["month"], "2025-03")
        self.assertEqual(response.context["prev_month"], "2025-02")
        self.assertEqual(len(response.context["shifts"]), 1)
        # Weeks start on Sunday
        self.assertEqual(response.context["weeks"][0][0]["date"].weekday(), 6)

    def test_invalid_month_falls_back_to_current(self):
        response = self.client.get(reverse("attendance:activity"), {"month": "2025-13"})

        self.assertEqual(response.context["month"], timezone.localdate().strftime("%Y-%m"))

    def test_fill(self):
        response = self.client.post(reverse("attendance:activity_fill"), {
            "month": "2025-03",
            "dates": ["2025-03-03", "2025-03-04"],
            "check_in": "09:00",
            "check_out": "17:00",
            "day_type": DayType.OFFICE,
            "break_minutes": "30",
        })

        self.assertRedirects(response, reverse("attendance:activity") + "?month=2025-03")
        self.assertEqual(Shift.objects.filter(user=self.user).count(), 2)

    def test_fill_with_invalid_date_saves_nothing(self):
        self.client.post(reverse("attendance:activity_fill"), {
            "dates": ["2025-03-03", "not-a-date"],
            "check_in": "09:00",
            "check_out": "17:00",
        })

        self.assertFalse(Shift.objects.exists())

    def test_delete_selected_days(self):
        create_shift(self.user, day=date(2025, 3, 3))
        create_shift(self.user, day=date(2025, 3, 4))

        self.client.post(reverse("attendance:activity_delete"), {"month": "2025-03", "dates": ["2025-03-03"]})

        self.assertEqual(list(Shift.objects.values_list("date", flat=True)), [date(2025, 3, 4)])


class ShiftEditViewTests(CacheIsolationMixin, TestCase):
    """Tests for shift edit and delete pages."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.other = create_user(email="other@example.com", name="Other")
        self.shift = create_shift(self.user)
        self.client.login(email="user@example.com", password="testpass123")

    def test_edit_form_prefills_local_times(self):
        response = self.client.get(reverse("attendance:shift_edit", args=[self.shift.pk]))

        self.assertEqual(response.context["check_in"], "09:00")
        self.assertEqual(response.context["check_out"], "17:00")

    def test_edit_own_shift(self):
        response = self.client.post(reverse("attendance:shift_edit", args=[self.shift.pk]), {
            "check_in": "10:00",
            "check_out": "12:00",
            "break_minutes": "",
            "note": "short day",
        })

        self.assertRedirects(response, reverse("attendance:home"))
        self.shift.refresh_from_db()
        self.assertEqual(self.shift.duration, 120)
        self.assertEqual(self.shift.note, "short day")

    def test_edit_invalid_time_rerenders(self):
        response = self.client.post(reverse("attendance:shift_edit", args=[self.shift.pk]), {
            "check_in": "25:00",
            "check_out": "",
        })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Check-in time is required")

    def test_cannot_edit_other_users_shift(self):
        theirs = create_shift(self.other)

        response = self.client.post(reverse("attendance:shift_edit", args=[theirs.pk]), {
            "check_in": "10:00",
            "check_out": "11:00",
        })

        self.assertRedirects(response, reverse("attendance:home"))
        theirs.refresh_from_db()
        self.assertEqual(theirs.duration, 480)

    def test_admin_edits_other_users_shift(self):
        create_user(email="admin@example.com", is_admin=True)
        self.client.logout()
        self.client.login(email="admin@example.com", password="testpass123")

        response = self.client.post(reverse("attendance:shift_edit", args=[self.shift.pk]), {
            "check_in": "09:00",
            "check_out": "10:00",
        })

        self.assertRedirects(
            response, reverse("attendance:admin_shifts") + "?month=2025-03", fetch_redirect_response=False,
        )
        self.shift.refresh_from_db()
        self.assertEqual(self.shift.duration, 60)

    def test_delete_own_shift(self):
        self.client.post(reverse("attendance:shift_delete", args=[self.shift.pk]))

        self.assertFalse(Shift.objects.filter(pk=self.shift.pk).exists())

    def test_cannot_delete_other_users_shift(self):
        theirs = create_shift(self.other)

        self.client.post(reverse("attendance:shift_delete", args=[theirs.pk]))

        self.assertTrue(Shift.objects.filter(pk=theirs.pk).exists())


class AdminShiftViewTests(CacheIsolationMixin, TestCase):
    """Tests for the admin month review, export and live board."""

    def setUp(self):
        super().setUp()
        self.admin = create_user(email="admin@example.com", name="Admin", is_admin=True)
        self.user = create_user()
        create_shift(self.user)
        self.client.login(email="admin@example.com", password="testpass123")

    def test_month_review(self):
        response = self.client.get(reverse("attendance:admin_shifts"), {"month": "2025-03"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.context["groups"]), 1)
        self.assertEqual(response.context["stats"].total_minutes, 480)

    def test_non_admin_is_redirected(self):
        self.client.logout()
        self.client.login(email="user@example.com", password="testpass123")

        response = self.client.get(reverse("attendance:admin_shifts"))

        self.assertRedirects(response, reverse("attendance:home"))

    def test_export_returns_workbook(self):
        response = self.client.get(reverse("attendance:admin_shifts_export"), {"month": "2025-03"})

        self.assertEqual(response.status_code, 200)
        self.assertIn('filename="shifts_2025-03.xlsx"', response["Content-Disposition"])
        ws = load_workbook(BytesIO(response.content)).active
        self.assertEqual(ws.cell(row=2, column=1).value, "Test User")

    def test_live_rows_lists_checked_in_users(self):
        ActiveShift.objects.create(user=self.user, user_name=self.user.name, check_in=timezone.now())

        response = self.client.get(reverse("attendance:live_rows"))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Test User")

    def test_live_page_when_nobody_checked_in(self):
        response = self.client.get(reverse("attendance:live"))

        self.assertContains(response, "Nobody is checked in.")


class ShiftPdfViewTests(CacheIsolationMixin, TestCase):
    """Tests for the attendance PDF download."""

    def setUp(self):
        super().setUp()
        self.user = create_user()
        self.other = create_user(email="other@example.com", name="Other User")
        create_shift(self.user)
        create_shift(self.other)
        self.client.login(email="user@example.com", password="testpass123")

    def test_own_month_as_pdf(self):
        response = self.client.get(reverse("attendance:shifts_pdf"), {"month": "2025-03"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertIn("attendance_Test_User_March_2025.pdf", response["Content-Disposition"])
        self.assertTrue(response.content.startswith(b"%PDF"))

    def test_empty_month_redirects_home(self):
        response = self.client.get(reverse("attendance:shifts_pdf"), {"month": "2025-04"})

        self.assertRedirects(response, reverse("attendance:home"))

    def test_other_user_needs_admin(self):
        response = self.client.get(reverse("attendance:shifts_pdf"), {"month": "2025-03", "user": self.other.pk})

        self.assertRedirects(response, reverse("attendance:home"))

    def test_admin_exports_other_user(self):
        create_user(email="admin@example.com", name="Admin", is_admin=True)
        self.client.logout()
        self.client.login(email="admin@example.com", password="testpass123")

        response = self.client.get(reverse("attendance:shifts_pdf"), {"month": "2025-03", "user": self.other.pk})

        self.assertEqual(response.status_code, 200)
        self.assertIn("attendance_Other_User_March_2025.pdf", response["Content-Disposition"])
