"""
Views for login, the user's own profile, and admin user management.
"""

import base64

from django.conf import settings
from django.contrib import messages
from django.contrib.auth import get_user_model, logout, update_session_auth_hash
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from . import services
from .decorators import admin_required

User = get_user_model()

MAX_PICTURE_BYTES = 2 * 1024 * 1024
PICTURE_CONTENT_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


def _error_message(exc: ValidationError) -> str:
    return " ".join(exc.messages)


# =============================================================================
# Login / logout
# =============================================================================

@require_http_methods(["GET", "POST"])
def login_view(request: HttpRequest) -> HttpResponse:
    """Email + password login form."""
    if request.user.is_authenticated:
        return redirect(settings.LOGIN_REDIRECT_URL)

    next_url = request.POST.get("next") or request.GET.get("next", "")
    email = ""
    errors = []

    if request.method == "POST":
        email = request.POST.get("email", "").strip()
        password = request.POST.get("password", "")

        if not email or not password:
            errors.append("Email and password are required")
        else:
            try:
                services.login_user(request, email, password)
            except ValidationError as exc:
                errors.append(_error_message(exc))
            else:
                if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
                    return redirect(next_url)
                return redirect(settings.LOGIN_REDIRECT_URL)

    return render(request, "accounts/login.html", {
        "email": email,
        "errors": errors,
        "next": next_url,
    })


@require_POST
def logout_view(request: HttpRequest) -> HttpResponse:
    logout(request)
    return redirect(settings.LOGOUT_REDIRECT_URL)


# =============================================================================
# User Profile
# =============================================================================

def _picture_data_url(upload) -> str:
    if upload.content_type not in PICTURE_CONTENT_TYPES:
        raise ValidationError("Profile picture must be a PNG, JPEG, GIF or WebP image.", code="invalid_picture")
    if upload.size > MAX_PICTURE_BYTES:
        raise ValidationError("Profile picture must be 2 MB or smaller.", code="picture_too_large")
    encoded = base64.b64encode(upload.read()).decode("ascii")
    return f"data:{upload.content_type};base64,{encoded}"


@login_required
@require_http_methods(["GET", "POST"])
def profile_view(request: HttpRequest) -> HttpResponse:
    """User profile page: name, picture and password change."""
    errors = []

    if request.method == "POST":
        action = request.POST.get("action", "profile")
        try:
            if action == "password":
                services.change_password(
                    request.user,
                    request.POST.get("current_password", ""),
                    request.POST.get("new_password", ""),
                )
                update_session_auth_hash(request, request.user)  # Keep user logged in
                messages.success(request, "Password changed.")
            else:
                picture = None
                if request.FILES.get("profile_picture"):
                    picture = _picture_data_url(request.FILES["profile_picture"])
                elif request.POST.get("remove_picture"):
                    picture = ""
                services.update_profile(
                    request.user,
                    name=request.POST.get("name", ""),
                    profile_picture=picture,
                )
                messages.success(request, "Profile updated.")
        except ValidationError as exc:
            errors.append(_error_message(exc))
        else:
            return redirect("accounts:profile")

    return render(request, "accounts/profile.html", {"errors": errors})


# =============================================================================
# Admin user management
# =============================================================================

@admin_required
@require_GET
def user_list(request: HttpRequest) -> HttpResponse:
    """All users, disabled ones included, for the admin panel."""
    users = User.objects.all().order_by("is_disabled", "name")
    return render(request, "accounts/users.html", {"users": users})


@admin_required
@require_http_methods(["GET", "POST"])
def user_add(request: HttpRequest) -> HttpResponse:
    """Create a new user."""
    if request.method == "POST":
        email = request.POST.get("email", "").strip()
        name = request.POST.get("name", "").strip()
        department = request.POST.get("department", "").strip()
        is_admin = request.POST.get("is_admin") == "on"

        try:
            services.admin_create_user(
                request.user,
                email=email,
                password=request.POST.get("password", ""),
                name=name,
                is_admin=is_admin,
                department=department,
            )
        except ValidationError as exc:
            return render(request, "accounts/user_form.html", {
                "errors": [_error_message(exc)],
                "email": email,
                "name": name,
                "department": department,
                "is_admin_checked": is_admin,
            })
        messages.success(request, f"User {name} created.")
        return redirect("accounts:users")

    return render(request, "accounts/user_form.html", {})


def _run_admin_action(request, action, *args) -> HttpResponse:
    try:
        action(request.user, *args)
    except ValidationError as exc:
        messages.error(request, _error_message(exc))
    except PermissionDenied:
        messages.error(request, "Only the primary admin can do that.")
    return redirect("accounts:users")


@admin_required
@require_POST
def user_toggle_admin(request: HttpRequest, pk: int) -> HttpResponse:
    target = get_object_or_404(User, pk=pk)
    make_admin = request.POST.get("is_admin") == "on"
    return _run_admin_action(request, services.admin_toggle_admin, target, make_admin)


@admin_required
@require_POST
def user_department(request: HttpRequest, pk: int) -> HttpResponse:
    target = get_object_or_404(User, pk=pk)
    return _run_admin_action(request, services.admin_update_department, target, request.POST.get("department", ""))


@admin_required
@require_POST
def user_disable(request: HttpRequest, pk: int) -> HttpResponse:
    target = get_object_or_404(User, pk=pk)
    disabled = request.POST.get("disabled", "1") == "1"
    return _run_admin_action(request, services.admin_set_disabled, target, disabled)


@admin_required
@require_POST
def user_delete(request: HttpRequest, pk: int) -> HttpResponse:
    target = get_object_or_404(User, pk=pk)
    return _run_admin_action(request, services.admin_delete_user, target)
