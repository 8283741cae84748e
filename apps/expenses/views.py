"""
Views for the monthly expense report editor and the admin review page.
"""

import logging

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.http import HttpRequest, HttpResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from apps.accounts.decorators import admin_required
from apps.core.months import current_month_key, expense_period, month_key, parse_month, shift_month

from . import services
from .exports import report_pdf_response
from .forms import ExpenseItemFormSet, ExpenseReportForm, formset_items
from .models import CURRENCY_SYMBOLS, ExpenseReport

logger = logging.getLogger(__name__)


def _month_param(value: str | None) -> str:
    try:
        return month_key(*parse_month(value or ""))
    except ValueError:
        return current_month_key()


def _month_nav(month: str) -> dict:
    year, mon = parse_month(month)
    return {
        "month": month,
        "period": expense_period(month),
        "prev_month": month_key(*shift_month(year, mon, -1)),
        "next_month": month_key(*shift_month(year, mon, 1)),
    }


def _report_url(month: str) -> str:
    return f"{reverse('expenses:report')}?month={month}"


@login_required
@require_http_methods(["GET", "POST"])
def report_view(request: HttpRequest) -> HttpResponse:
    """The current user's report for a month: header fields and item rows."""
    month = _month_param(request.POST.get("month") or request.GET.get("month"))
    report = services.report_for_user_month(request.user, month)
    instance = report or ExpenseReport(user=request.user, user_name=request.user.name, month=month)

    if request.method == "POST":
        if not instance.is_editable:
            messages.error(request, f"This report is {instance.get_status_display().lower()} and cannot be edited.")
            return redirect(_report_url(month))

        form = ExpenseReportForm(request.POST, instance=instance)
        formset = ExpenseItemFormSet(request.POST, request.FILES, instance=instance)
        if form.is_valid() and formset.is_valid():
            submit = request.POST.get("action") == "submit"
            items = formset_items(formset)
            if submit and not items:
                messages.error(request, "Add at least one item before submitting.")
            else:
                try:
                    services.save_report(
                        request.user,
                        month,
                        items,
                        exchange_rate_usd=form.cleaned_data["exchange_rate_usd"],
                        exchange_rate_eur=form.cleaned_data["exchange_rate_eur"],
                        checked_by=form.cleaned_data["checked_by"],
                        approved_by=form.cleaned_data["approved_by"],
                        submit=submit,
                    )
                except ValueError as exc:
                    messages.error(request, str(exc))
                else:
                    messages.success(request, "Report submitted." if submit else "Report saved.")
                return redirect(_report_url(month))
    else:
        form = ExpenseReportForm(instance=instance)
        formset = ExpenseItemFormSet(instance=instance)

    return render(request, "expenses/report.html", {
        "report": report,
        "form": form,
        "formset": formset,
        "editable": instance.is_editable,
        "currency_symbols": CURRENCY_SYMBOLS,
        **_month_nav(month),
    })


@login_required
@require_POST
def report_delete(request: HttpRequest, pk: int) -> HttpResponse:
    report = get_object_or_404(ExpenseReport, pk=pk)
    month = report.month
    try:
        services.delete_report(request.user, report)
    except PermissionDenied:
        messages.error(request, "Only draft reports can be deleted.")
        return redirect(_report_url(month))

    messages.success(request, "Report deleted.")
    if report.user_id != request.user.pk:
        return redirect(f"{reverse('expenses:admin_reports')}?month={month}")
    return redirect(_report_url(month))


# =============================================================================
# Admin review
# =============================================================================

@admin_required
@require_GET
def admin_reports(request: HttpRequest) -> HttpResponse:
    """All reports for a month, grouped by user."""
    month = _month_param(request.GET.get("month"))
    return render(request, "expenses/admin_reports.html", {
        "groups": services.reports_by_user(month),
        "currency_symbols": CURRENCY_SYMBOLS,
        **_month_nav(month),
    })


@admin_required
@require_POST
def report_review(request: HttpRequest, pk: int) -> HttpResponse:
    """Approve or reject a submitted report."""
    report = get_object_or_404(ExpenseReport, pk=pk)
    action = request.POST.get("action")
    note = request.POST.get("note", "").strip()

    try:
        if action == "approve":
            services.approve_report(request.user, report, note)
            messages.success(request, f"Report of {report.user_name} approved.")
        elif action == "reject":
            services.reject_report(request.user, report, note)
            messages.success(request, f"Report of {report.user_name} rejected.")
        else:
            messages.error(request, "Unknown action.")
    except ValueError as exc:
        messages.error(request, str(exc))

    return redirect(f"{reverse('expenses:admin_reports')}?month={report.month}")


@admin_required
@require_GET
def report_pdf(request: HttpRequest, pk: int) -> HttpResponse:
    """One report as PDF, for printing and filing."""
    report = get_object_or_404(ExpenseReport.objects.prefetch_related("items"), pk=pk)
    logger.info("User %s exported expense report %s as PDF", request.user.pk, report.pk)
    return report_pdf_response(report)
