"""
Tests for the accounts application.

This module tests:
- User model, primary admin handling and API tokens
- Legacy password upgrade and the email backend
- Login, logout and per-request session validation
- Profile and admin user management (services and views)
- Management commands

Uses Django TestCase with pytest-django compatibility.
"""

import hashlib
import json
import tempfile
from datetime import timedelta
from io import StringIO
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.core.cache import cache
from django.core.exceptions import PermissionDenied, ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import OperationalError
from django.test import RequestFactory, TestCase
from django.urls import reverse
from django.utils import timezone
from django.utils.functional import SimpleLazyObject

from apps.attendance.models import ActiveShift, Shift
from apps.attendance.storage import ShiftStore
from apps.expenses.models import ExpenseReport

from . import services
from .middleware import SessionValidationMiddleware
from .models import PersonalAccessToken, is_primary_admin
from .passwords import is_legacy_password, verify_password
from .sessions import SESSION_TOKEN_KEY, snapshot_cache_key, validate_session

User = get_user_model()


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_user(email="user@example.com", password="testpass123", name="Test User", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(email=email, password=password, name=name, **kwargs)


def create_admin(email="admin@example.com", password="adminpass123", name="Admin User", **kwargs):
    """Create and return a regular (non-primary) admin."""
    return create_user(email=email, password=password, name=name, is_admin=True, **kwargs)


def create_primary_admin(password="primarypass123", **kwargs):
    """Create and return the configured primary admin."""
    return create_user(email=settings.PRIMARY_ADMIN_EMAIL, password=password, name="Primary Admin", **kwargs)


def create_shift(user, day=None, hours=8, **kwargs):
    """Create and return a completed shift for the user."""
    day = day or timezone.localdate()
    check_in = timezone.now().replace(year=day.year, month=day.month, day=day.day, hour=9, minute=0)
    return Shift.objects.create(
        user=user,
        user_name=user.name,
        date=day,
        check_in=check_in,
        check_out=check_in + timedelta(hours=hours),
        duration=hours * 60,
        **kwargs,
    )


def set_raw_password(user, value):
    """Store a password value as-is, bypassing the hashers."""
    User.objects.filter(pk=user.pk).update(password=value)
    user.refresh_from_db()


# =============================================================================
# MODEL TESTS
# =============================================================================


class UserModelTests(TestCase):
    """Tests for the User model."""

    def test_email_is_stored_lower_case(self):
        user = create_user(email="Mixed.Case@Example.COM")

        self.assertEqual(user.email, "mixed.case@example.com")

    def test_create_user_without_email_raises(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email="", password="x", name="No Email")

    def test_regular_user_has_no_admin_rights(self):
        user = create_user()

        self.assertFalse(user.has_admin_rights)
        self.assertFalse(user.is_staff)
        self.assertFalse(user.has_perm("anything"))

    def test_admin_flag_grants_admin_rights(self):
        admin = create_admin()

        self.assertTrue(admin.has_admin_rights)
        self.assertFalse(admin.is_primary_admin)

    def test_primary_admin_is_admin_by_default(self):
        primary = create_primary_admin()

        self.assertTrue(primary.is_admin)
        self.assertTrue(primary.is_primary_admin)

    def test_primary_admin_has_rights_even_without_flag(self):
        primary = create_primary_admin(is_admin=False)

        self.assertFalse(primary.is_admin)
        self.assertTrue(primary.has_admin_rights)

    def test_is_primary_admin_ignores_case_and_whitespace(self):
        self.assertTrue(is_primary_admin(f"  {settings.PRIMARY_ADMIN_EMAIL.upper()} "))
        self.assertFalse(is_primary_admin("someone@example.com"))
        self.assertFalse(is_primary_admin(None))

    def test_disabled_user_is_inactive(self):
        user = create_user(is_disabled=True)

        self.assertFalse(user.is_active)

    def test_natural_key_lookup_is_case_insensitive(self):
        user = create_user(email="lookup@example.com")

        self.assertEqual(User.objects.get_by_natural_key("LOOKUP@example.com"), user)

    def test_ordering_by_name(self):
        create_user(email="b@example.com", name="Bravo")
        create_user(email="a@example.com", name="Alpha")

        names = list(User.objects.values_list("name", flat=True))
        self.assertEqual(names, ["Alpha", "Bravo"])


class PersonalAccessTokenModelTests(TestCase):
    """Tests for the PersonalAccessToken model."""

    def setUp(self):
        self.user = create_user()

    def test_issue_creates_token_and_returns_raw_value(self):
        token_obj, raw_token = PersonalAccessToken.issue(user=self.user, label="Test Token")

        self.assertEqual(token_obj.user, self.user)
        self.assertIsNone(token_obj.expires_at)
        self.assertEqual(token_obj.token_hash, hashlib.sha256(raw_token.encode()).hexdigest())

    def test_issue_with_ttl_sets_expiry(self):
        before = timezone.now()
        token_obj, _ = PersonalAccessToken.issue(user=self.user, label="Expiring", ttl_hours=24)

        self.assertGreaterEqual(token_obj.expires_at, before + timedelta(hours=24))

    def test_authenticate_raw_token_updates_last_used(self):
        token_obj, raw_token = PersonalAccessToken.issue(user=self.user, label="Test")

        found = PersonalAccessToken.authenticate_raw_token(raw_token)

        self.assertEqual(found.pk, token_obj.pk)
        self.assertIsNotNone(found.last_used_at)

    def test_authenticate_rejects_revoked_token(self):
        token_obj, raw_token = PersonalAccessToken.issue(user=self.user, label="Test")
        token_obj.revoke()

        self.assertIsNone(PersonalAccessToken.authenticate_raw_token(raw_token))

    def test_authenticate_rejects_expired_token(self):
        token_obj, raw_token = PersonalAccessToken.issue(user=self.user, label="Test", ttl_hours=1)
        token_obj.expires_at = timezone.now() - timedelta(minutes=1)
        token_obj.save()

        self.assertIsNone(PersonalAccessToken.authenticate_raw_token(raw_token))

    def test_authenticate_rejects_disabled_user(self):
        _, raw_token = PersonalAccessToken.issue(user=self.user, label="Test")
        self.user.is_disabled = True
        self.user.save()

        self.assertIsNone(PersonalAccessToken.authenticate_raw_token(raw_token))

    def test_rotate_replaces_secret_and_reactivates(self):
        token_obj, old_raw = PersonalAccessToken.issue(user=self.user, label="Test")
        token_obj.revoke()

        new_raw = token_obj.rotate()

        self.assertNotEqual(new_raw, old_raw)
        self.assertTrue(token_obj.is_active())
        self.assertIsNone(PersonalAccessToken.authenticate_raw_token(old_raw))
        self.assertIsNotNone(PersonalAccessToken.authenticate_raw_token(new_raw))


# =============================================================================
# PASSWORD AND BACKEND TESTS
# =============================================================================


class LegacyPasswordTests(TestCase):
    """Tests for plain-text and sha256 password upgrade."""

    def setUp(self):
        self.user = create_user()

    def test_django_hash_is_not_legacy(self):
        self.assertFalse(is_legacy_password(self.user.password))

    def test_plain_text_is_legacy(self):
        self.assertTrue(is_legacy_password("secret1"))

    def test_unusable_password_is_not_legacy(self):
        self.user.set_unusable_password()

        self.assertFalse(is_legacy_password(self.user.password))

    def test_django_hash_verifies(self):
        self.assertTrue(verify_password(self.user, "testpass123"))
        self.assertFalse(verify_password(self.user, "wrong"))

    def test_plain_text_password_is_upgraded(self):
        set_raw_password(self.user, "secret1")

        self.assertTrue(verify_password(self.user, "secret1"))

        self.user.refresh_from_db()
        self.assertFalse(is_legacy_password(self.user.password))
        self.assertTrue(self.user.check_password("secret1"))

    def test_sha256_password_is_upgraded(self):
        set_raw_password(self.user, hashlib.sha256(b"secret1").hexdigest())

        self.assertTrue(verify_password(self.user, "secret1"))

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("secret1"))

    def test_wrong_legacy_password_leaves_value_untouched(self):
        set_raw_password(self.user, "secret1")

        self.assertFalse(verify_password(self.user, "other"))

        self.user.refresh_from_db()
        self.assertEqual(self.user.password, "secret1")

    def test_none_password_never_matches(self):
        self.assertFalse(verify_password(self.user, None))


class EmailBackendTests(TestCase):
    """Tests for EmailBackend."""

    def setUp(self):
        self.user = create_user(email="someone@example.com")

    def test_authenticates_with_any_email_case(self):
        user = authenticate(email="SomeOne@Example.com", password="testpass123")

        self.assertEqual(user, self.user)

    def test_wrong_password_returns_none(self):
        self.assertIsNone(authenticate(email="someone@example.com", password="nope"))

    def test_unknown_email_returns_none(self):
        self.assertIsNone(authenticate(email="ghost@example.com", password="testpass123"))

    def test_disabled_user_returns_none(self):
        self.user.is_disabled = True
        self.user.save()

        self.assertIsNone(authenticate(email="someone@example.com", password="testpass123"))

    def test_legacy_password_authenticates(self):
        set_raw_password(self.user, "secret1")

        self.assertEqual(authenticate(email="someone@example.com", password="secret1"), self.user)


# =============================================================================
# LOGIN / SESSION TESTS
# =============================================================================


class LoginViewTests(TestCase):
    """Tests for the login page."""

    def setUp(self):
        self.user = create_user(email="worker@example.com")
        self.url = reverse("accounts:login")

    def test_get_renders_form(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "accounts/login.html")

    def test_successful_login_redirects_home(self):
        response = self.client.post(self.url, {"email": "worker@example.com", "password": "testpass123"})

        self.assertRedirects(response, reverse("attendance:home"))

    def test_login_honours_safe_next(self):
        response = self.client.post(self.url, {
            "email": "worker@example.com",
            "password": "testpass123",
            "next": reverse("attendance:activity"),
        })

        self.assertRedirects(response, reverse("attendance:activity"))

    def test_login_ignores_external_next(self):
        response = self.client.post(self.url, {
            "email": "worker@example.com",
            "password": "testpass123",
            "next": "https://evil.example.com/",
        })

        self.assertRedirects(response, reverse("attendance:home"))

    def test_missing_fields_show_error(self):
        response = self.client.post(self.url, {"email": "", "password": ""})

        self.assertContains(response, "Email and password are required")

    def test_unknown_email_shows_error(self):
        response = self.client.post(self.url, {"email": "ghost@example.com", "password": "x"})

        self.assertContains(response, "No user with this email address.")

    def test_disabled_user_shows_error(self):
        self.user.is_disabled = True
        self.user.save()

        response = self.client.post(self.url, {"email": "worker@example.com", "password": "testpass123"})

        self.assertContains(response, "This account has been disabled.")

    def test_wrong_password_shows_error(self):
        response = self.client.post(self.url, {"email": "worker@example.com", "password": "wrong"})

        self.assertContains(response, "Incorrect password.")

    def test_primary_admin_flag_is_granted_on_login(self):
        primary = create_primary_admin(is_admin=False)

        self.client.post(self.url, {"email": settings.PRIMARY_ADMIN_EMAIL, "password": "primarypass123"})

        primary.refresh_from_db()
        self.assertTrue(primary.is_admin)

    def test_login_stores_session_token_and_snapshot(self):
        self.client.post(self.url, {"email": "worker@example.com", "password": "testpass123"})

        session = self.client.session
        token = session[SESSION_TOKEN_KEY]
        snapshot = cache.get(snapshot_cache_key(session.session_key))
        self.assertEqual(snapshot["session_token"], token)
        self.assertEqual(snapshot["email"], "worker@example.com")

    def test_logout_drops_snapshot(self):
        self.client.login(email="worker@example.com", password="testpass123")
        session_key = self.client.session.session_key

        self.client.post(reverse("accounts:logout"))

        self.assertIsNone(cache.get(snapshot_cache_key(session_key)))

    def test_logout_requires_post(self):
        self.client.login(email="worker@example.com", password="testpass123")

        response = self.client.get(reverse("accounts:logout"))

        self.assertEqual(response.status_code, 405)


class SessionValidationTests(TestCase):
    """Tests for SessionValidationMiddleware and validate_session()."""

    def setUp(self):
        self.user = create_user(email="worker@example.com")
        self.client.login(email="worker@example.com", password="testpass123")
        self.home = reverse("attendance:home")

    def _snapshot_key(self):
        return snapshot_cache_key(self.client.session.session_key)

    def test_valid_session_passes(self):
        response = self.client.get(self.home)

        self.assertEqual(response.status_code, 200)

    def test_snapshot_is_refreshed_from_database(self):
        User.objects.filter(pk=self.user.pk).update(name="Renamed")

        self.client.get(self.home)

        self.assertEqual(cache.get(self._snapshot_key())["name"], "Renamed")

    def test_token_mismatch_logs_out(self):
        key = self._snapshot_key()
        cache.set(key, {**cache.get(key), "session_token": "someone-else"})

        response = self.client.get(self.home)

        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("accounts:login"), response.url)

    def test_missing_token_logs_out(self):
        session = self.client.session
        del session[SESSION_TOKEN_KEY]
        session.save()

        response = self.client.get(self.home)

        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("accounts:login"), response.url)

    def test_disabled_in_database_logs_out(self):
        User.objects.filter(pk=self.user.pk).update(is_disabled=True)

        response = self.client.get(self.home)

        self.assertEqual(response.status_code, 302)
        self.assertIn(reverse("accounts:login"), response.url)

    def test_deleted_user_logs_out(self):
        User.objects.filter(pk=self.user.pk).delete()

        response = self.client.get(self.home)

        self.assertEqual(response.status_code, 302)

    def test_database_error_keeps_session_with_snapshot(self):
        request = RequestFactory().get("/")
        request.session = self.client.session

        def unavailable():
            raise OperationalError("database is down")

        request.user = SimpleLazyObject(unavailable)

        result = validate_session(request)

        self.assertEqual(result["email"], "worker@example.com")
        self.assertIn(SESSION_TOKEN_KEY, request.session)

    def test_database_error_answers_service_unavailable(self):
        request = RequestFactory().get("/")
        request.session = self.client.session

        def unavailable():
            raise OperationalError("database is down")

        request.user = SimpleLazyObject(unavailable)
        view = Mock()

        response = SessionValidationMiddleware(view)(request)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response["Retry-After"], "30")
        view.assert_not_called()
        self.assertIn(SESSION_TOKEN_KEY, request.session)

    def test_anonymous_request_is_ignored(self):
        self.client.logout()
        request = RequestFactory().get("/")
        request.session = self.client.session

        self.assertIsNone(validate_session(request))


# =============================================================================
# SERVICE TESTS
# =============================================================================


class ValidateAdminTests(TestCase):
    """validate_admin() re-reads the user from the database."""

    def test_stale_instance_loses_rights(self):
        admin = create_admin()
        User.objects.filter(pk=admin.pk).update(is_admin=False)

        self.assertTrue(admin.has_admin_rights)
        self.assertFalse(services.validate_admin(admin))

    def test_disabled_admin_has_no_rights(self):
        admin = create_admin()
        User.objects.filter(pk=admin.pk).update(is_disabled=True)

        self.assertFalse(services.validate_admin(admin))

    def test_none_is_not_admin(self):
        self.assertFalse(services.validate_admin(None))

    def test_primary_admin_always_passes(self):
        primary = create_primary_admin(is_admin=False)

        self.assertTrue(services.validate_admin(primary))

    def test_database_error_trusts_instance_flag(self):
        admin = create_admin()

        with patch.object(User.objects, "filter", side_effect=OperationalError("down")):
            self.assertTrue(services.validate_admin(admin))


class ProfileServiceTests(TestCase):
    """Tests for update_profile() and change_password()."""

    def setUp(self):
        self.user = create_user(name="Old Name")

    def test_rename_propagates_to_shifts_and_reports(self):
        create_shift(self.user)
        ActiveShift.objects.create(user=self.user, user_name="Old Name", check_in=timezone.now())
        ExpenseReport.objects.create(user=self.user, user_name="Old Name", month="2026-02")

        services.update_profile(self.user, name="New Name")

        self.assertEqual(Shift.objects.get(user=self.user).user_name, "New Name")
        self.assertEqual(ActiveShift.objects.get(user=self.user).user_name, "New Name")
        self.assertEqual(ExpenseReport.objects.get(user=self.user).user_name, "New Name")

    def test_rename_keeps_writes_waiting_for_database(self):
        store = ShiftStore(self.user)
        store.get_shifts()
        check_in = timezone.now() - timedelta(days=1)
        with patch.object(Shift.objects, "update_or_create", side_effect=OperationalError("down")):
            store.add_shift(Shift(
                user_id=self.user.pk,
                user_name=self.user.name,
                date=timezone.localdate(check_in),
                check_in=check_in,
                check_out=check_in + timedelta(hours=8),
                duration=480,
            ))

        services.update_profile(self.user, name="Renamed")

        self.assertEqual([e["payload"]["user_name"] for e in store.pending()], ["Renamed"])
        self.assertEqual([r["user_name"] for r in store.get_shifts()], ["Renamed"])

        store.flush_pending()

        self.assertEqual(list(Shift.objects.values_list("user_name", flat=True)), ["Renamed"])

    def test_blank_name_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            services.update_profile(self.user, name="   ")

        self.assertEqual(ctx.exception.code, "name_required")

    def test_picture_only_update_keeps_name(self):
        services.update_profile(self.user, profile_picture="data:image/png;base64,AAAA")

        self.user.refresh_from_db()
        self.assertEqual(self.user.name, "Old Name")
        self.assertEqual(self.user.profile_picture, "data:image/png;base64,AAAA")

    def test_change_password(self):
        services.change_password(self.user, "testpass123", "newpass456")

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password("newpass456"))

    def test_change_password_too_short(self):
        with self.assertRaises(ValidationError) as ctx:
            services.change_password(self.user, "testpass123", "abc")

        self.assertEqual(ctx.exception.code, "password_too_short")

    def test_change_password_wrong_current(self):
        with self.assertRaises(ValidationError) as ctx:
            services.change_password(self.user, "wrong", "newpass456")

        self.assertEqual(ctx.exception.code, "incorrect_password")


class AdminUserServiceTests(TestCase):
    """Tests for the admin user management rules."""

    def setUp(self):
        self.primary = create_primary_admin()
        self.admin = create_admin()
        self.user = create_user()

    def test_create_user(self):
        created = services.admin_create_user(
            self.admin,
            email="New@Example.com",
            password="secret1",
            name="New Person",
            department="Israel",
        )

        self.assertEqual(created.email, "new@example.com")
        self.assertEqual(created.department, "Israel")
        self.assertFalse(created.is_admin)
        self.assertTrue(created.check_password("secret1"))

    def test_create_user_requires_admin(self):
        with self.assertRaises(PermissionDenied):
            services.admin_create_user(self.user, email="x@example.com", password="secret1", name="X")

    def test_create_user_rejects_duplicate_email(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_create_user(self.admin, email="USER@example.com", password="secret1", name="Dup")

        self.assertEqual(ctx.exception.code, "email_exists")

    def test_create_user_rejects_short_password(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_create_user(self.admin, email="x@example.com", password="123", name="X")

        self.assertEqual(ctx.exception.code, "password_too_short")

    def test_create_user_requires_name(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_create_user(self.admin, email="x@example.com", password="secret1", name="")

        self.assertEqual(ctx.exception.code, "required")

    def test_create_user_rejects_unknown_department(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_create_user(
                self.admin, email="x@example.com", password="secret1", name="X", department="Mars",
            )

        self.assertEqual(ctx.exception.code, "invalid_department")

    def test_only_primary_admin_toggles_admin(self):
        with self.assertRaises(PermissionDenied):
            services.admin_toggle_admin(self.admin, self.user, True)

        services.admin_toggle_admin(self.primary, self.user, True)

        self.user.refresh_from_db()
        self.assertTrue(self.user.is_admin)

    def test_primary_admin_cannot_be_demoted(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_toggle_admin(self.primary, self.primary, False)

        self.assertEqual(ctx.exception.code, "cannot_demote_primary_admin")

    def test_only_primary_admin_changes_department(self):
        with self.assertRaises(PermissionDenied):
            services.admin_update_department(self.admin, self.user, "Cyprus")

        services.admin_update_department(self.primary, self.user, "Cyprus")

        self.user.refresh_from_db()
        self.assertEqual(self.user.department, "Cyprus")

    def test_department_change_is_logged(self):
        with self.assertLogs("apps.accounts.services", level="INFO") as logs:
            services.admin_update_department(self.primary, self.user, "Cyprus")

        self.assertIn("Department for user@example.com", logs.output[0])

    def test_disable_user_clears_active_shift(self):
        ActiveShift.objects.create(user=self.user, user_name=self.user.name, check_in=timezone.now())

        services.admin_set_disabled(self.admin, self.user, True)

        self.user.refresh_from_db()
        self.assertTrue(self.user.is_disabled)
        self.assertFalse(ActiveShift.objects.filter(user=self.user).exists())

    def test_enable_user(self):
        self.user.is_disabled = True
        self.user.save()

        services.admin_set_disabled(self.admin, self.user, False)

        self.user.refresh_from_db()
        self.assertFalse(self.user.is_disabled)

    def test_cannot_disable_primary_admin(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_set_disabled(self.admin, self.primary, True)

        self.assertEqual(ctx.exception.code, "cannot_disable_primary_admin")

    def test_cannot_disable_self(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_set_disabled(self.admin, self.admin, True)

        self.assertEqual(ctx.exception.code, "cannot_disable_self")

    def test_delete_user_removes_history(self):
        create_shift(self.user)
        ExpenseReport.objects.create(user=self.user, user_name=self.user.name, month="2026-02")

        services.admin_delete_user(self.admin, self.user)

        self.assertFalse(User.objects.filter(pk=self.user.pk).exists())
        self.assertEqual(Shift.objects.count(), 0)
        self.assertEqual(ExpenseReport.objects.count(), 0)

    def test_cannot_delete_primary_admin(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_delete_user(self.admin, self.primary)

        self.assertEqual(ctx.exception.code, "cannot_delete_primary_admin")

    def test_cannot_delete_self(self):
        with self.assertRaises(ValidationError) as ctx:
            services.admin_delete_user(self.admin, self.admin)

        self.assertEqual(ctx.exception.code, "cannot_delete_self")

    def test_non_admin_cannot_delete(self):
        other = create_user(email="other@example.com")

        with self.assertRaises(PermissionDenied):
            services.admin_delete_user(self.user, other)


# =============================================================================
# VIEW TESTS
# =============================================================================


class ProfileViewTests(TestCase):
    """Tests for the profile page."""

    def setUp(self):
        self.user = create_user(email="worker@example.com", name="Worker")
        self.client.login(email="worker@example.com", password="testpass123")
        self.url = reverse("accounts:profile")

    def test_requires_login(self):
        self.client.logout()

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 302)

    def test_get_renders(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "accounts/profile.html")

    def test_rename(self):
        response = self.client.post(self.url, {"action": "profile", "name": "Renamed Worker"})

        self.assertRedirects(response, self.url)
        self.user.refresh_from_db()
        self.assertEqual(self.user.name, "Renamed Worker")

    def test_change_password_keeps_session(self):
        response = self.client.post(self.url, {
            "action": "password",
            "current_password": "testpass123",
            "new_password": "newpass456",
        })

        self.assertRedirects(response, self.url)
        self.assertEqual(self.client.get(self.url).status_code, 200)

    def test_change_password_error_is_shown(self):
        response = self.client.post(self.url, {
            "action": "password",
            "current_password": "wrong",
            "new_password": "newpass456",
        })

        self.assertContains(response, "Current password is incorrect.")


class UserAdminViewTests(TestCase):
    """Tests for the admin user management pages."""

    def setUp(self):
        self.admin = create_admin()
        self.user = create_user()
        self.client.login(email="admin@example.com", password="adminpass123")

    def test_user_list_for_admin(self):
        response = self.client.get(reverse("accounts:users"))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, self.user.email)

    def test_user_list_redirects_non_admin(self):
        self.client.logout()
        self.client.login(email="user@example.com", password="testpass123")

        response = self.client.get(reverse("accounts:users"))

        self.assertRedirects(response, reverse("attendance:home"))

    def test_user_list_redirects_revoked_admin(self):
        User.objects.filter(pk=self.admin.pk).update(is_admin=False)

        response = self.client.get(reverse("accounts:users"))

        self.assertRedirects(response, reverse("attendance:home"))

    def test_add_user(self):
        response = self.client.post(reverse("accounts:user_add"), {
            "email": "fresh@example.com",
            "name": "Fresh",
            "password": "secret1",
            "department": "UK",
        })

        self.assertRedirects(response, reverse("accounts:users"))
        self.assertTrue(User.objects.filter(email="fresh@example.com", department="UK").exists())

    def test_add_user_error_rerenders_form(self):
        response = self.client.post(reverse("accounts:user_add"), {
            "email": "user@example.com",
            "name": "Dup",
            "password": "secret1",
        })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "A user with this email already exists.")

    def test_disable_user(self):
        response = self.client.post(reverse("accounts:user_disable", args=[self.user.pk]), {"disabled": "1"})

        self.assertRedirects(response, reverse("accounts:users"))
        self.user.refresh_from_db()
        self.assertTrue(self.user.is_disabled)

    def test_toggle_admin_by_regular_admin_is_refused(self):
        self.client.post(reverse("accounts:user_toggle_admin", args=[self.user.pk]), {"is_admin": "on"})

        self.user.refresh_from_db()
        self.assertFalse(self.user.is_admin)

    def test_toggle_admin_by_primary_admin(self):
        create_primary_admin()
        self.client.logout()
        self.client.login(email=settings.PRIMARY_ADMIN_EMAIL, password="primarypass123")

        self.client.post(reverse("accounts:user_toggle_admin", args=[self.user.pk]), {"is_admin": "on"})

        self.user.refresh_from_db()
        self.assertTrue(self.user.is_admin)

    def test_delete_user(self):
        response = self.client.post(reverse("accounts:user_delete", args=[self.user.pk]))

        self.assertRedirects(response, reverse("accounts:users"))
        self.assertFalse(User.objects.filter(pk=self.user.pk).exists())

    def test_delete_unknown_user_404(self):
        response = self.client.post(reverse("accounts:user_delete", args=[9999]))

        self.assertEqual(response.status_code, 404)


# =============================================================================
# MANAGEMENT COMMAND TESTS
# =============================================================================


class ImportUsersCommandTests(TestCase):
    """Tests for the import_users management command."""

    def _write(self, rows):
        handle = tempfile.NamedTemporaryFile("w", suffix=".json", delete=False, encoding="utf-8")
        with handle:
            json.dump(rows, handle)
        self.addCleanup(Path(handle.name).unlink)
        return handle.name

    def test_imports_new_and_updates_existing(self):
        create_user(email="known@example.com", name="Known")
        path = self._write([
            {"email": "Known@example.com", "name": "Known Renamed", "isAdmin": True},
            {"email": "new@example.com", "name": "New", "password": "secret1", "department": "USA"},
            {"name": "No email"},
        ])
        out = StringIO()

        call_command("import_users", path, stdout=out, stderr=StringIO())

        self.assertIn("1 created, 1 updated, 1 skipped", out.getvalue())
        known = User.objects.get(email="known@example.com")
        self.assertEqual(known.name, "Known Renamed")
        self.assertTrue(known.is_admin)

    def test_imported_plain_password_upgrades_on_login(self):
        path = self._write([{"email": "legacy@example.com", "name": "Legacy", "password": "secret1"}])
        call_command("import_users", path, stdout=StringIO())

        self.assertTrue(self.client.login(email="legacy@example.com", password="secret1"))
        self.assertFalse(is_legacy_password(User.objects.get(email="legacy@example.com").password))

    def test_missing_file_raises(self):
        with self.assertRaises(CommandError):
            call_command("import_users", "/nonexistent/users.json")


class IssueApiTokenCommandTests(TestCase):
    """Tests for the issue_api_token management command."""

    def test_prints_working_token(self):
        user = create_user()
        out = StringIO()

        call_command("issue_api_token", "user@example.com", "payroll", stdout=out)

        raw = out.getvalue().strip().splitlines()[-1]
        token = PersonalAccessToken.authenticate_raw_token(raw)
        self.assertEqual(token.user, user)
        self.assertEqual(token.label, "payroll")

    def test_unknown_user_raises(self):
        with self.assertRaises(CommandError):
            call_command("issue_api_token", "ghost@example.com", "x", stdout=StringIO())


# =============================================================================
# FIXTURE-BASED VIEW TESTS
# =============================================================================


@pytest.mark.django_db
def test_employee_is_sent_home_from_user_admin(authenticated_client):
    response = authenticated_client.get(reverse("accounts:users"))

    assert response.status_code == 302
    assert response.url == reverse("attendance:home")


@pytest.mark.django_db
def test_plain_admin_cannot_promote(admin_client, another_user):
    response = admin_client.post(
        reverse("accounts:user_toggle_admin", args=[another_user.pk]), {"is_admin": "on"}
    )

    assert response.status_code == 302
    another_user.refresh_from_db()
    assert not another_user.is_admin


@pytest.mark.django_db
def test_primary_admin_login_persists_admin_flag(client, primary_admin):
    response = client.post(
        reverse("accounts:login"),
        {"email": "PRIMARY@example.com", "password": "primarypass123"},
    )

    assert response.status_code == 302
    primary_admin.refresh_from_db()
    assert primary_admin.is_admin
    assert client.get(reverse("accounts:users")).status_code == 200
