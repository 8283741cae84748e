# models.py (Django 5.x) - Timeclock accounts
#
# Users log in with their email address. Admin rights come from the is_admin
# flag or from being the configured primary admin.

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.db import models
from django.utils import timezone


def is_primary_admin(email: str | None) -> bool:
    """True when the email is the configured primary admin (case-insensitive)."""
    if not email:
        return False
    return email.strip().lower() == settings.PRIMARY_ADMIN_EMAIL.strip().lower()


class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("An email address is required")
        email = self.normalize_email(email).lower()
        extra_fields.setdefault("is_admin", is_primary_admin(email))
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields["is_admin"] = True
        return self._create_user(email, password, **extra_fields)

    def get_by_natural_key(self, username):
        return self.get(email__iexact=username)


class User(AbstractBaseUser):
    """
    An employee. Email is the login identifier and is stored lower-case.
    Disabling a user is a soft delete: the row and its history stay.
    """
    email = models.EmailField(max_length=254, unique=True)
    name = models.CharField(max_length=120)
    is_admin = models.BooleanField(default=False)
    is_disabled = models.BooleanField(default=False)
    department = models.CharField(max_length=40, blank=True, default="")
    profile_picture = models.TextField(blank=True, default="")  # data URL or URL
    created_at = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = "email"
    EMAIL_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    class Meta:
        ordering = ["name", "id"]

    def __str__(self) -> str:
        return self.name or self.email

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_active(self) -> bool:
        return not self.is_disabled

    @property
    def is_primary_admin(self) -> bool:
        return is_primary_admin(self.email)

    @property
    def has_admin_rights(self) -> bool:
        return self.is_admin or self.is_primary_admin

    # Django admin site access
    @property
    def is_staff(self) -> bool:
        return self.has_admin_rights

    @property
    def is_superuser(self) -> bool:
        return self.has_admin_rights

    def has_perm(self, perm, obj=None) -> bool:
        return self.is_active and self.has_admin_rights

    def has_module_perms(self, app_label) -> bool:
        return self.is_active and self.has_admin_rights

    def get_full_name(self) -> str:
        return self.name

    def get_short_name(self) -> str:
        return self.name.split(" ")[0] if self.name else self.email


class PersonalAccessToken(models.Model):
    """Token auth for the REST API."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="api_tokens")
    label = models.CharField(max_length=80)
    token_hash = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    revoked_at = models.DateTimeField(null=True, blank=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.user} - {self.label}"

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and timezone.now() >= self.expires_at

    def is_active(self) -> bool:
        return not self.is_revoked and not self.is_expired

    def revoke(self) -> None:
        if self.revoked_at is None:
            self.revoked_at = timezone.now()
            self.save(update_fields=["revoked_at"])

    def rotate(self, ttl_hours: int | None = None) -> str:
        """Replace the secret, reactivate the token and return the new raw value."""
        raw = secrets.token_urlsafe(32)
        self.token_hash = self._hash(raw)
        self.revoked_at = None
        self.expires_at = timezone.now() + timedelta(hours=ttl_hours) if ttl_hours else None
        self.save(update_fields=["token_hash", "revoked_at", "expires_at"])
        return raw

    @staticmethod
    def _hash(raw_token: str) -> str:
        return hashlib.sha256(raw_token.encode()).hexdigest()

    @classmethod
    def issue(cls, *, user, label: str, ttl_hours: int | None = None) -> tuple["PersonalAccessToken", str]:
        raw = secrets.token_urlsafe(32)
        expires_at = timezone.now() + timedelta(hours=ttl_hours) if ttl_hours else None
        obj = cls.objects.create(user=user, label=label, token_hash=cls._hash(raw), expires_at=expires_at)
        return obj, raw

    @classmethod
    def authenticate_raw_token(cls, raw_token: str) -> "PersonalAccessToken | None":
        tok = cls.objects.filter(token_hash=cls._hash(raw_token)).select_related("user").first()
        if not tok or not tok.is_active() or tok.user.is_disabled:
            return None
        tok.last_used_at = timezone.now()
        tok.save(update_fields=["last_used_at"])
        return tok
