"""
Pytest configuration and shared fixtures for the Timeclock project.

Users, clients, API tokens and a sample shift and expense report, plus
cache clearing between tests so the attendance local store never leaks.
"""

import pytest
from datetime import datetime, timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import caches
from django.test import Client
from django.utils import timezone

from rest_framework.test import APIClient


User = get_user_model()


# =============================================================================
# CACHE ISOLATION
# =============================================================================


@pytest.fixture(autouse=True)
def clear_caches():
    """Empty the session snapshot cache and the shift store between tests."""
    caches["default"].clear()
    caches[settings.ATTENDANCE_CACHE_ALIAS].clear()
    yield
    caches["default"].clear()
    caches[settings.ATTENDANCE_CACHE_ALIAS].clear()


# =============================================================================
# USER FIXTURES
# =============================================================================


@pytest.fixture
def user(db):
    """Create and return a standard employee."""
    return User.objects.create_user(
        email="test@example.com",
        password="testpass123",
        name="Test User",
        department="Israel",
    )


@pytest.fixture
def admin_user(db):
    """Create and return a regular admin."""
    return User.objects.create_user(
        email="admin@example.com",
        password="adminpass123",
        name="Admin User",
        is_admin=True,
    )


@pytest.fixture
def primary_admin(db):
    """Create and return the configured primary admin."""
    return User.objects.create_user(
        email=settings.PRIMARY_ADMIN_EMAIL,
        password="primarypass123",
        name="Primary Admin",
    )


@pytest.fixture
def another_user(db):
    """Create and return a second employee."""
    return User.objects.create_user(
        email="another@example.com",
        password="testpass123",
        name="Another User",
    )


# =============================================================================
# CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def client():
    """Provide a Django test client."""
    return Client()


@pytest.fixture
def authenticated_client(client, user):
    """Provide a Django test client logged in as the test user."""
    client.login(email="test@example.com", password="testpass123")
    return client


@pytest.fixture
def admin_client(client, admin_user):
    """Provide a Django test client logged in as an admin."""
    client.login(email="admin@example.com", password="adminpass123")
    return client


@pytest.fixture
def api_client():
    """Provide a DRF API test client."""
    return APIClient()


@pytest.fixture
def authenticated_api_client(api_client, access_token):
    """Provide an API client authenticated as the test user with a Bearer token."""
    _, raw_token = access_token
    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
    return api_client


@pytest.fixture
def admin_api_client(admin_user):
    """Provide an API client authenticated as an admin."""
    from apps.accounts.models import PersonalAccessToken

    _, raw_token = PersonalAccessToken.issue(user=admin_user, label="Admin Token")
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {raw_token}")
    return client


# =============================================================================
# TOKEN FIXTURES
# =============================================================================


@pytest.fixture
def access_token(db, user):
    """Create and return a PersonalAccessToken and its raw value as a tuple."""
    from apps.accounts.models import PersonalAccessToken

    return PersonalAccessToken.issue(
        user=user,
        label="Test Token",
    )


@pytest.fixture
def expired_token(db, user):
    """Create and return an already-expired token."""
    from apps.accounts.models import PersonalAccessToken

    token_obj, raw_token = PersonalAccessToken.issue(
        user=user,
        label="Expired Token",
        ttl_hours=1,
    )
    token_obj.expires_at = timezone.now() - timedelta(hours=1)
    token_obj.save()
    return token_obj, raw_token


@pytest.fixture
def revoked_token(db, user):
    """Create and return a revoked token."""
    from apps.accounts.models import PersonalAccessToken

    token_obj, raw_token = PersonalAccessToken.issue(
        user=user,
        label="Revoked Token",
    )
    token_obj.revoke()
    return token_obj, raw_token


# =============================================================================
# MODEL FIXTURES
# =============================================================================


@pytest.fixture
def shift(db, user):
    """Create and return a completed 8-hour shift from yesterday."""
    from apps.attendance.models import Shift

    day = timezone.localdate() - timedelta(days=1)
    check_in = timezone.make_aware(datetime(day.year, day.month, day.day, 9, 0))
    return Shift.objects.create(
        user=user,
        user_name=user.name,
        date=day,
        check_in=check_in,
        check_out=check_in + timedelta(hours=8),
        duration=8 * 60,
    )


@pytest.fixture
def submitted_report(db, user):
    """Create and return a submitted expense report with one NIS item."""
    from apps.expenses import services

    return services.save_report(
        user,
        "2026-02",
        [{"currency": "NIS", "quantity": 2, "description": "Taxi", "unit_price": "50.00"}],
        submit=True,
    )


# =============================================================================
# UTILITY FIXTURES
# =============================================================================


@pytest.fixture
def freeze_time():
    """Patch timezone.now for the duration of a with block."""
    from unittest.mock import patch

    class TimeFreezer:
        def __call__(self, frozen_time):
            return patch("django.utils.timezone.now", return_value=frozen_time)

    return TimeFreezer()
