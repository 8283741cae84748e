"""View decorators for admin-only pages."""

from functools import wraps

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect

from .services import validate_admin


def admin_required(view_func):
    """Login required, plus admin rights confirmed against the database."""

    @login_required
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not validate_admin(request.user):
            messages.error(request, "You are not authorized to view that page.")
            return redirect("attendance:home")
        return view_func(request, *args, **kwargs)

    return _wrapped
