"""URL configuration for the REST API."""

from django.urls import path

from . import views

app_name = "api"

urlpatterns = [
    path("health/", views.health_check, name="health"),
    path("v1/me/", views.MeView.as_view(), name="me"),
    path("v1/shifts/", views.ShiftListView.as_view(), name="shifts"),
    path("v1/shifts/check-in/", views.CheckInView.as_view(), name="check_in"),
    path("v1/shifts/check-out/", views.CheckOutView.as_view(), name="check_out"),
    path("v1/active-shifts/", views.ActiveShiftListView.as_view(), name="active_shifts"),
    path("v1/expense-reports/", views.ExpenseReportListView.as_view(), name="expense_reports"),
    path("v1/expense-reports/<int:pk>/approve/", views.ExpenseReportApproveView.as_view(), name="expense_report_approve"),
    path("v1/expense-reports/<int:pk>/reject/", views.ExpenseReportRejectView.as_view(), name="expense_report_reject"),
]
