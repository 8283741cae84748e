"""
Django settings for the pytest suite.

Extends base.py with an in-memory database, a fast password hasher and
no retry backoff so the dual-write store tests run instantly.
"""

from .base import *  # noqa: F401, F403

DEBUG = False

SECRET_KEY = "test-secret-key"

ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

STORAGES = {  # noqa: F405
    "default": {
        "BACKEND": "django.core.files.storage.InMemoryStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

PRIMARY_ADMIN_EMAIL = "primary@example.com"

ATTENDANCE_SYNC_RETRIES = 3
ATTENDANCE_SYNC_RETRY_DELAY = 0

LOGGING["root"]["level"] = "WARNING"  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "WARNING"  # noqa: F405
