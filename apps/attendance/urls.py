"""URL configuration for the time clock."""

from django.urls import path

from . import views

app_name = "attendance"

urlpatterns = [
    path("", views.home_view, name="home"),
    path("check-in/", views.check_in_view, name="check_in"),
    path("check-out/", views.check_out_view, name="check_out"),
    path("sick-day/", views.sick_day_view, name="sick_day"),
    path("active/details/", views.active_details, name="active_details"),
    # Manual entry
    path("activity/", views.activity_view, name="activity"),
    path("activity/fill/", views.activity_fill, name="activity_fill"),
    path("activity/delete/", views.activity_delete, name="activity_delete"),
    path("shifts/<uuid:pk>/edit/", views.shift_edit, name="shift_edit"),
    path("shifts/<uuid:pk>/delete/", views.shift_delete, name="shift_delete"),
    # Admin
    path("admin-shifts/", views.admin_shifts, name="admin_shifts"),
    path("history/pdf/", views.shifts_pdf, name="shifts_pdf"),
    path("admin-shifts/export/", views.admin_shifts_export, name="admin_shifts_export"),
    path("live/", views.live_view, name="live"),
    path("live/rows/", views.live_rows, name="live_rows"),
]
