"""
Tests for the shared month helpers, template filters and context processor.
"""

from datetime import date

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.template import Context, Template
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings

from .context_processors import timeclock
from .months import (
    expense_period,
    format_duration,
    format_minutes,
    month_bounds,
    month_key,
    parse_month,
    shift_month,
)

User = get_user_model()


class MonthHelperTests(SimpleTestCase):
    """Tests for month keys."""

    def test_parse_month(self):
        self.assertEqual(parse_month("2026-02"), (2026, 2))

    def test_parse_month_rejects_bad_input(self):
        for value in ["", "2026-2", "2026-13", "2026-00", "Feb 2026", None]:
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_month(value)

    def test_month_key_pads(self):
        self.assertEqual(month_key(2026, 3), "2026-03")

    def test_month_bounds_handles_leap_year(self):
        self.assertEqual(month_bounds(2024, 2), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(2025, 12), (date(2025, 12, 1), date(2025, 12, 31)))

    def test_shift_month_crosses_years(self):
        self.assertEqual(shift_month(2026, 1, -1), (2025, 12))
        self.assertEqual(shift_month(2025, 12, 1), (2026, 1))
        self.assertEqual(shift_month(2026, 5, -17), (2024, 12))

    def test_expense_period(self):
        self.assertEqual(expense_period("2026-02"), "Feb, 2026")


class DurationFormatTests(SimpleTestCase):
    """Tests for duration formatting and the template filters."""

    def test_format_minutes(self):
        self.assertEqual(format_minutes(545), "9:05")
        self.assertEqual(format_minutes(0), "0:00")
        self.assertEqual(format_minutes(-10), "0:00")

    def test_format_duration(self):
        self.assertEqual(format_duration(545), "9h 5m")

    def test_template_filters(self):
        rendered = Template("{% load timeclock %}{{ m|hm }} {{ m|hours_minutes }} {{ none|hm }}").render(
            Context({"m": 125, "none": None})
        )

        self.assertEqual(rendered, "2:05 2h 5m 0:00")


@override_settings(PRIMARY_ADMIN_EMAIL="primary@example.com")
class ContextProcessorTests(TestCase):
    """Tests for the timeclock context processor."""

    def setUp(self):
        self.factory = RequestFactory()

    def test_anonymous(self):
        request = self.factory.get("/")
        request.user = AnonymousUser()

        context = timeclock(request)

        self.assertFalse(context["is_admin"])
        self.assertFalse(context["is_primary_admin"])
        self.assertIn("app_version", context)

    def test_primary_admin_flags(self):
        request = self.factory.get("/")
        request.user = User.objects.create_user(email="primary@example.com", password="x", name="Primary")

        context = timeclock(request)

        self.assertTrue(context["is_admin"])
        self.assertTrue(context["is_primary_admin"])
