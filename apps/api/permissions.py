"""API permissions."""

from rest_framework.permissions import BasePermission

from apps.accounts.services import validate_admin


class IsTimeclockAdmin(BasePermission):
    """Admin rights, re-checked against the database on every request."""

    message = "Admin rights required."

    def has_permission(self, request, view) -> bool:
        return validate_admin(request.user)
