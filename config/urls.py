"""
URL configuration for the Timeclock project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.0/topics/http/urls/
"""

from django.conf import settings
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Django admin
    path("admin/", admin.site.urls),
    # Login, profile and user management
    path("accounts/", include("apps.accounts.urls", namespace="accounts")),
    # Check-in/out, history, admin shift review
    path("", include("apps.attendance.urls", namespace="attendance")),
    # Expense reports
    path("expenses/", include("apps.expenses.urls", namespace="expenses")),
    # REST API
    path("api/", include("apps.api.urls", namespace="api")),
]

if settings.DEBUG:
    # Serve uploaded invoices in development
    from django.conf.urls.static import static

    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
