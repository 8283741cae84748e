"""URL configuration for expense reports."""

from django.urls import path

from . import views

app_name = "expenses"

urlpatterns = [
    path("", views.report_view, name="report"),
    path("<int:pk>/delete/", views.report_delete, name="report_delete"),
    # Admin review
    path("review/", views.admin_reports, name="admin_reports"),
    path("review/<int:pk>/", views.report_review, name="report_review"),
    path("review/<int:pk>/pdf/", views.report_pdf, name="report_pdf"),
]
