# models.py (Django 5.x) - Timeclock attendance
#
# A Shift is one check-in/check-out per user per day. While a user is
# checked in, the in-progress shift lives in ActiveShift.

from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class DayType(models.TextChoices):
    OFFICE = "office", "Office"
    HOME = "home", "Home"
    SICK = "sick", "Sick"
    OTHER = "other", "Other"


class Shift(models.Model):
    """
    A completed (or manually entered) work day.
    `duration` is net minutes: check-out minus check-in minus break.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="shifts")
    user_name = models.CharField(max_length=120)  # copied from user.name, kept in sync on rename
    date = models.DateField()  # local date of check-in
    check_in = models.DateTimeField()
    check_out = models.DateTimeField(null=True, blank=True)
    note = models.TextField(blank=True, default="")
    duration = models.PositiveIntegerField(default=0)  # minutes
    break_minutes = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-date", "-check_in"]
        constraints = [
            models.UniqueConstraint(fields=["user", "date"], name="unique_shift_per_user_per_day"),
        ]
        indexes = [
            models.Index(fields=["date"], name="attendance_shift_date_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.user_name} {self.date:%Y-%m-%d}"

    @property
    def is_open(self) -> bool:
        return self.check_out is None


class ActiveShift(models.Model):
    """The shift a user is currently checked in to. At most one per user."""
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="active_shift",
    )
    user_name = models.CharField(max_length=120)
    check_in = models.DateTimeField()
    note = models.TextField(blank=True, default="")
    day_type = models.CharField(max_length=10, choices=DayType.choices, default=DayType.OFFICE)

    class Meta:
        ordering = ["-check_in"]

    def __str__(self) -> str:
        return f"{self.user_name} since {self.check_in:%H:%M}"

    def elapsed_minutes(self, now=None) -> int:
        now = now or timezone.now()
        return max(0, round((now - self.check_in).total_seconds() / 60))
