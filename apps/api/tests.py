"""
Tests for the REST API.

This module tests:
- Bearer token authentication
- Shift listing, check-in and check-out
- The admin-only live list and expense review endpoints

Token authentication tests use Django TestCase; endpoint tests use the
shared pytest fixtures from conftest.py.
"""

from datetime import timedelta

import pytest
from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from apps.accounts.models import PersonalAccessToken
from apps.attendance.models import ActiveShift, Shift
from apps.expenses.models import ExpenseReport

User = get_user_model()


def create_user(email="user@example.com", password="testpass123", name="Test User", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(email=email, password=password, name=name, **kwargs)


def month_of(day):
    return day.strftime("%Y-%m")


# =============================================================================
# AUTHENTICATION TESTS
# =============================================================================


class APIAuthenticationTests(TestCase):
    """Tests for API token authentication."""

    def setUp(self):
        """Set up API client and test data."""
        self.client = APIClient()
        self.user = create_user()
        self.url = reverse("api:me")

    def test_health_check_needs_no_auth(self):
        """Health check is public."""
        response = self.client.get(reverse("api:health"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy", "service": "timeclock"})

    def test_unauthenticated_request_returns_401(self):
        """Request without credentials is rejected with a Bearer challenge."""
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response["WWW-Authenticate"], "Bearer")

    def test_valid_token_authentication(self):
        """Valid token identifies the user."""
        _, raw_token = PersonalAccessToken.issue(user=self.user, label="Test")

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["email"], "user@example.com")
        self.assertFalse(response.json()["is_admin"])

    def test_invalid_token_returns_401(self):
        """Unknown token returns 401."""
        self.client.credentials(HTTP_AUTHORIZATION="Bearer invalid-token")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 401)

    def test_malformed_header_returns_401(self):
        """Bearer header with extra parts returns 401."""
        self.client.credentials(HTTP_AUTHORIZATION="Bearer one two")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 401)

    def test_disabled_user_token_returns_401(self):
        """Tokens of disabled users stop working."""
        _, raw_token = PersonalAccessToken.issue(user=self.user, label="Test")
        User.objects.filter(pk=self.user.pk).update(is_disabled=True)

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 401)

    def test_session_login_also_works(self):
        """Browser sessions can call the API."""
        self.client.login(email="user@example.com", password="testpass123")

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)


@pytest.mark.django_db
def test_expired_token_is_rejected(api_client, expired_token):
    _, raw_token = expired_token
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")

    response = api_client.get(reverse("api:me"))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
def test_revoked_token_is_rejected(api_client, revoked_token):
    _, raw_token = revoked_token
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")

    response = api_client.get(reverse("api:me"))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


# =============================================================================
# SHIFT ENDPOINTS
# =============================================================================


@pytest.mark.django_db
def test_list_own_shifts(authenticated_api_client, shift):
    response = authenticated_api_client.get(reverse("api:shifts"), {"month": month_of(shift.date)})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["total_minutes"] == 480
    assert data["results"][0]["id"] == str(shift.pk)


@pytest.mark.django_db
def test_list_shifts_rejects_bad_month(authenticated_api_client):
    response = authenticated_api_client.get(reverse("api:shifts"), {"month": "2026-13"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_list_shifts_rejects_non_numeric_user(admin_api_client):
    response = admin_api_client.get(reverse("api:shifts"), {"user": "abc"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_non_admin_cannot_list_everyone(authenticated_api_client, another_user):
    assert authenticated_api_client.get(reverse("api:shifts"), {"all": "1"}).status_code == 403
    assert authenticated_api_client.get(reverse("api:shifts"), {"user": another_user.pk}).status_code == 403


@pytest.mark.django_db
def test_admin_lists_other_user_and_everyone(admin_api_client, user, shift):
    month = month_of(shift.date)

    one = admin_api_client.get(reverse("api:shifts"), {"month": month, "user": user.pk})
    everyone = admin_api_client.get(reverse("api:shifts"), {"month": month, "all": "1"})

    assert one.json()["count"] == 1
    assert everyone.json()["results"][0]["user"] == user.pk


@pytest.mark.django_db
def test_check_in_then_conflict(authenticated_api_client, user):
    first = authenticated_api_client.post(reverse("api:check_in"))
    second = authenticated_api_client.post(reverse("api:check_in"))

    assert first.status_code == status.HTTP_201_CREATED
    assert first.json()["day_type"] == "office"
    assert second.status_code == status.HTTP_409_CONFLICT
    assert ActiveShift.objects.filter(user=user).count() == 1


@pytest.mark.django_db
def test_check_out_with_details(authenticated_api_client, user):
    ActiveShift.objects.create(user=user, user_name=user.name, check_in=timezone.now() - timedelta(hours=8))

    response = authenticated_api_client.post(
        reverse("api:check_out"),
        {"break_minutes": 30, "note": "client", "day_type": "home"},
        format="json",
    )

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["duration"] == 450
    assert response.json()["note"] == "Work from Home | client"
    assert not ActiveShift.objects.filter(user=user).exists()
    assert Shift.objects.filter(user=user).count() == 1


@pytest.mark.django_db
def test_check_out_without_check_in_conflicts(authenticated_api_client):
    response = authenticated_api_client.post(reverse("api:check_out"), {}, format="json")

    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.django_db
def test_check_out_rejects_negative_break(authenticated_api_client):
    response = authenticated_api_client.post(reverse("api:check_out"), {"break_minutes": -1}, format="json")

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_active_shifts_admin_only(authenticated_api_client, admin_api_client, user, freeze_time):
    now = timezone.now()
    ActiveShift.objects.create(user=user, user_name=user.name, check_in=now - timedelta(minutes=90))

    assert authenticated_api_client.get(reverse("api:active_shifts")).status_code == 403

    with freeze_time(now):
        response = admin_api_client.get(reverse("api:active_shifts"))
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["results"][0]["elapsed_minutes"] == 90


# =============================================================================
# EXPENSE ENDPOINTS
# =============================================================================


@pytest.mark.django_db
def test_expense_reports_are_scoped_to_owner(authenticated_api_client, admin_api_client, submitted_report, another_user):
    from apps.expenses import services

    services.save_report(another_user, "2026-02", [])

    own = authenticated_api_client.get(reverse("api:expense_reports"))
    every = admin_api_client.get(reverse("api:expense_reports"), {"month": "2026-02"})

    assert own.json()["count"] == 1
    assert own.json()["results"][0]["grand_total_nis"] == "100.00"
    assert own.json()["results"][0]["items"][0]["description"] == "Taxi"
    assert every.json()["count"] == 2


@pytest.mark.django_db
def test_expense_reports_rejects_bad_month(authenticated_api_client):
    response = authenticated_api_client.get(reverse("api:expense_reports"), {"month": "02-2026"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
def test_admin_approves_report(admin_api_client, admin_user, submitted_report):
    url = reverse("api:expense_report_approve", args=[submitted_report.pk])

    response = admin_api_client.post(url, {"note": "ok"}, format="json")
    again = admin_api_client.post(url, {}, format="json")

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["reviewed_by_email"] == admin_user.email
    assert again.status_code == status.HTTP_409_CONFLICT


@pytest.mark.django_db
def test_non_admin_cannot_reject(authenticated_api_client, submitted_report):
    url = reverse("api:expense_report_reject", args=[submitted_report.pk])

    response = authenticated_api_client.post(url, {}, format="json")

    assert response.status_code == 403
    submitted_report.refresh_from_db()
    assert submitted_report.status == ExpenseReport.Status.SUBMITTED


@pytest.mark.django_db
def test_review_unknown_report_404(admin_api_client):
    response = admin_api_client.post(reverse("api:expense_report_reject", args=[9999]), {}, format="json")

    assert response.status_code == 404
