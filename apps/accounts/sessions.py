"""
Session tokens and per-request validation.

Each login stores a random session token in the session and a snapshot of
the user (id, email, name, role flags, token) in the cache. On every request
the session is checked in this order:

1. no token in the session -> logged out
2. cached snapshot exists but its token differs, or it says disabled -> logged out
3. user re-read from the database; missing or disabled -> logged out
4. snapshot refreshed from the database row

If the database cannot be reached the session is kept, the snapshot is
returned and the request is flagged with database_unavailable.
"""

from __future__ import annotations

import logging
import secrets

from django.contrib.auth import SESSION_KEY, logout
from django.core.cache import cache
from django.db import DatabaseError

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "timeclock_session_token"


def snapshot_cache_key(session_key: str) -> str:
    return f"accounts:session:{session_key}"


def user_snapshot(user, token: str) -> dict:
    return {
        "id": user.pk,
        "email": user.email,
        "name": user.name,
        "is_admin": user.has_admin_rights,
        "is_disabled": user.is_disabled,
        "department": user.department,
        "session_token": token,
    }


def _ensure_session_key(request) -> str:
    if not request.session.session_key:
        request.session.save()
    return request.session.session_key


def store_snapshot(request, user, token: str) -> None:
    cache.set(snapshot_cache_key(_ensure_session_key(request)), user_snapshot(user, token))


def load_snapshot(request) -> dict | None:
    session_key = request.session.session_key
    if not session_key:
        return None
    return cache.get(snapshot_cache_key(session_key))


def issue_session_token(request, user) -> str:
    """Start a fresh session token for a user that just logged in."""
    token = secrets.token_urlsafe(24)
    request.session[SESSION_TOKEN_KEY] = token
    store_snapshot(request, user, token)
    return token


def end_session(request, reason: str) -> None:
    """Log the request out. The user_logged_out receiver drops the snapshot."""
    logger.warning("Ending session for user %s: %s", request.session.get(SESSION_KEY), reason)
    logout(request)


def forget_snapshot(request) -> None:
    session_key = request.session.session_key
    if session_key:
        cache.delete(snapshot_cache_key(session_key))


def validate_session(request):
    """
    Validate the logged-in session of this request.

    Returns the user (or the cached snapshot when the database is down),
    or None when there is no session or it was ended.
    """
    if SESSION_KEY not in request.session:
        return None

    token = request.session.get(SESSION_TOKEN_KEY)
    if not token:
        end_session(request, "no session token")
        return None

    snapshot = load_snapshot(request)
    if snapshot is not None:
        if snapshot.get("session_token") != token:
            end_session(request, "session token mismatch")
            return None
        if snapshot.get("is_disabled"):
            end_session(request, "user is disabled")
            return None

    try:
        user = request.user
        authenticated = user.is_authenticated  # forces the database lookup
    except DatabaseError:
        logger.exception("Could not validate session against the database, keeping it")
        request.database_unavailable = True
        return snapshot

    if not authenticated or user.is_disabled:
        end_session(request, "user no longer exists or is disabled")
        return None

    store_snapshot(request, user, token)
    return user
