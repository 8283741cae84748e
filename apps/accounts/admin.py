"""Django admin configuration for accounts app."""

from django.contrib import admin

from .models import PersonalAccessToken, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """Admin for users. Passwords are managed from the app, not here."""
    list_display = ["email", "name", "department", "is_admin", "is_disabled", "last_login"]
    list_filter = ["is_admin", "is_disabled", "department"]
    search_fields = ["email", "name"]
    readonly_fields = ["password", "last_login", "created_at"]
    ordering = ["name"]


@admin.register(PersonalAccessToken)
class PersonalAccessTokenAdmin(admin.ModelAdmin):
    """Admin for API tokens."""
    list_display = ["label", "user", "created_at", "expires_at", "revoked_at", "last_used_at"]
    list_filter = ["user"]
    search_fields = ["label", "user__email"]
    readonly_fields = ["token_hash", "created_at", "last_used_at"]
