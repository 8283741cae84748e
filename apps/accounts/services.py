"""
Account operations: login, profile, and admin user management.

Business rule violations raise ValidationError with a code; callers that
are not allowed to perform an action get PermissionDenied.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model, login
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import DatabaseError, transaction

from apps.attendance.models import ActiveShift, Shift
from apps.attendance.storage import ShiftStore
from apps.expenses.models import ExpenseReport

from .models import is_primary_admin
from .passwords import verify_password

logger = logging.getLogger(__name__)

User = get_user_model()

BACKEND_PATH = "apps.accounts.backends.EmailBackend"


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_admin(user) -> bool:
    """
    Re-read the user from the database and confirm admin rights.

    The primary admin always passes. If the database cannot be reached the
    flag on the given instance is trusted.
    """
    if user is None or not user.is_authenticated:
        return False
    if user.is_primary_admin:
        return True
    try:
        fresh = User.objects.filter(pk=user.pk).first()
    except DatabaseError:
        logger.exception("Could not re-check admin rights for user %s", user.pk)
        return user.has_admin_rights
    return bool(fresh and not fresh.is_disabled and fresh.has_admin_rights)


def _require_admin(user) -> None:
    if not validate_admin(user):
        raise PermissionDenied("not_authorized")


def _require_primary_admin(user) -> None:
    if not (user and user.is_authenticated and is_primary_admin(user.email)):
        raise PermissionDenied("only_primary_admin")


# =============================================================================
# Login
# =============================================================================

def login_user(request, email: str, password: str):
    """
    Log a user in by email and password.

    Raises ValidationError with code user_not_found, user_disabled or
    incorrect_password.
    """
    email = _normalize_email(email)
    user = User.objects.filter(email__iexact=email).first()
    if user is None:
        raise ValidationError("No user with this email address.", code="user_not_found")
    if user.is_disabled:
        raise ValidationError("This account has been disabled.", code="user_disabled")
    if not verify_password(user, password):
        raise ValidationError("Incorrect password.", code="incorrect_password")

    if user.is_primary_admin and not user.is_admin:
        user.is_admin = True
        user.save(update_fields=["is_admin"])

    login(request, user, backend=BACKEND_PATH)
    logger.info("User %s logged in", user.email)
    return user


# =============================================================================
# Profile
# =============================================================================

def update_profile(user, *, name: str | None = None, profile_picture: str | None = None):
    """
    Update the user's own name and/or picture.

    A new name is copied onto the user's shifts, active shift and expense
    reports so listings show the current name.
    """
    update_fields = []
    renamed = False

    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("Name is required.", code="name_required")
        if name != user.name:
            user.name = name
            update_fields.append("name")
            renamed = True

    if profile_picture is not None and profile_picture != user.profile_picture:
        user.profile_picture = profile_picture
        update_fields.append("profile_picture")

    if not update_fields:
        return user

    with transaction.atomic():
        user.save(update_fields=update_fields)
        if renamed:
            Shift.objects.filter(user=user).update(user_name=user.name)
            ActiveShift.objects.filter(user=user).update(user_name=user.name)
            ExpenseReport.objects.filter(user=user).update(user_name=user.name)

    if renamed:
        ShiftStore(user).rename(user.name)
        logger.info("User %s renamed to %s", user.pk, user.name)
    return user


def change_password(user, current_password: str, new_password: str):
    if len(new_password or "") < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters.",
            code="password_too_short",
        )
    if not verify_password(user, current_password):
        raise ValidationError("Current password is incorrect.", code="incorrect_password")

    user.set_password(new_password)
    user.save(update_fields=["password"])
    logger.info("User %s changed password", user.pk)
    return user


# =============================================================================
# Admin user management
# =============================================================================

def admin_create_user(actor, *, email: str, password: str, name: str, is_admin: bool = False, department: str = ""):
    _require_admin(actor)

    email = _normalize_email(email)
    name = (name or "").strip()
    if not email or not name:
        raise ValidationError("Email and name are required.", code="required")
    if len(password or "") < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters.",
            code="password_too_short",
        )
    if User.objects.filter(email__iexact=email).exists():
        raise ValidationError("A user with this email already exists.", code="email_exists")
    if department and department not in settings.DEPARTMENTS:
        raise ValidationError("Unknown department.", code="invalid_department")

    user = User.objects.create_user(
        email=email,
        password=password,
        name=name,
        is_admin=is_admin or is_primary_admin(email),
        department=department,
    )
    logger.info("Admin %s created user %s", actor.email, user.email)
    return user


def admin_toggle_admin(actor, target, make_admin: bool):
    _require_primary_admin(actor)
    if target.is_primary_admin and not make_admin:
        raise ValidationError("The primary admin cannot be demoted.", code="cannot_demote_primary_admin")

    target.is_admin = make_admin
    target.save(update_fields=["is_admin"])
    logger.info("Admin flag for %s set to %s by %s", target.email, make_admin, actor.email)
    return target


def admin_update_department(actor, target, department: str):
    _require_primary_admin(actor)
    department = (department or "").strip()
    if department and department not in settings.DEPARTMENTS:
        raise ValidationError("Unknown department.", code="invalid_department")

    target.department = department
    target.save(update_fields=["department"])
    logger.info("Department for %s set to %r by %s", target.email, department, actor.email)
    return target


def admin_set_disabled(actor, target, disabled: bool):
    """Disable or re-enable a user. Disabling also ends their open shift."""
    _require_admin(actor)
    if target.is_primary_admin:
        raise ValidationError("The primary admin cannot be disabled.", code="cannot_disable_primary_admin")
    if target.pk == actor.pk:
        raise ValidationError("You cannot disable yourself.", code="cannot_disable_self")

    target.is_disabled = disabled
    target.save(update_fields=["is_disabled"])
    if disabled:
        ShiftStore(target).set_active_shift(None)
    logger.info("User %s %s by %s", target.email, "disabled" if disabled else "enabled", actor.email)
    return target


def admin_delete_user(actor, target) -> None:
    """Delete a user with all their shifts and expense reports."""
    _require_admin(actor)
    if target.is_primary_admin:
        raise ValidationError("The primary admin cannot be deleted.", code="cannot_delete_primary_admin")
    if target.pk == actor.pk:
        raise ValidationError("You cannot delete yourself.", code="cannot_delete_self")

    email = target.email
    store = ShiftStore(target)
    with transaction.atomic():
        ExpenseReport.objects.filter(user=target).delete()
        ActiveShift.objects.filter(user=target).delete()
        Shift.objects.filter(user=target).delete()
        target.delete()
    store.evict()
    logger.info("User %s deleted by %s", email, actor.email)
