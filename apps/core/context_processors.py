"""
Context processors for the Timeclock project.
"""

from datetime import datetime
from pathlib import Path

from django.conf import settings


def _version_info():
    version_file = Path(settings.BASE_DIR) / "version.txt"

    version = "0.0.0"
    version_date = None

    if version_file.exists():
        version = version_file.read_text().strip()
        version_date = datetime.fromtimestamp(version_file.stat().st_mtime)

    return version, version_date


def timeclock(request):
    """
    Add navigation flags and version information to template context.

    Returns:
        dict with 'is_admin', 'is_primary_admin', 'departments',
        'app_version' and 'app_version_date' keys
    """
    user = getattr(request, "user", None)
    is_authenticated = bool(user and user.is_authenticated)
    version, version_date = _version_info()

    return {
        "is_admin": is_authenticated and user.has_admin_rights,
        "is_primary_admin": is_authenticated and user.is_primary_admin,
        "departments": settings.DEPARTMENTS,
        "app_version": version,
        "app_version_date": version_date,
    }
