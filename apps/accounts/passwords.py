"""
Password verification with legacy upgrade.

Users imported from the old system carry either a plain-text password or an
unsalted sha256 hex digest. Both are accepted once and replaced with a
Django hash on the first successful login.
"""

from __future__ import annotations

import hashlib
import logging
import re

from django.contrib.auth.hashers import identify_hasher, is_password_usable
from django.utils.crypto import constant_time_compare

logger = logging.getLogger(__name__)

SHA256_HEX_RE = re.compile(r"^[a-f0-9]{64}$")


def is_legacy_password(encoded: str | None) -> bool:
    """True if the stored value is not something Django's hashers understand."""
    if not encoded or not is_password_usable(encoded):
        return False
    try:
        identify_hasher(encoded)
    except ValueError:
        return True
    return False


def _legacy_matches(stored: str, raw_password: str) -> bool:
    if SHA256_HEX_RE.match(stored):
        digest = hashlib.sha256(raw_password.encode("utf-8")).hexdigest()
        return constant_time_compare(digest, stored)
    return constant_time_compare(raw_password, stored)


def verify_password(user, raw_password: str | None) -> bool:
    """
    Check raw_password against the user's stored password.

    A matching legacy password is re-hashed and saved.
    """
    if raw_password is None:
        return False

    stored = user.password
    if not is_legacy_password(stored):
        # Django re-hashes outdated algorithms itself
        return user.check_password(raw_password)

    if not _legacy_matches(stored, raw_password):
        return False

    user.set_password(raw_password)
    user.save(update_fields=["password"])
    logger.info("Upgraded legacy password for user %s", user.pk)
    return True
