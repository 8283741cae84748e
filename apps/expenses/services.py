"""
Expense report operations.

Reports can be edited while in draft or rejected. Approve and reject are
admin actions; the admin flag is re-read from the database each time.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.core.exceptions import PermissionDenied
from django.db import transaction

from apps.accounts.services import validate_admin
from apps.core.months import expense_period, parse_month

from .models import ExpenseItem, ExpenseReport

logger = logging.getLogger(__name__)


def report_for_user_month(user, month: str) -> ExpenseReport | None:
    return ExpenseReport.objects.filter(user=user, month=month).prefetch_related("items").first()


@transaction.atomic
def save_report(
    user,
    month: str,
    items: list[dict],
    exchange_rate_usd: Decimal | None = None,
    exchange_rate_eur: Decimal | None = None,
    checked_by: str = "",
    approved_by: str = "",
    submit: bool = False,
) -> ExpenseReport:
    """
    Create or update the user's report for a month and replace its items.

    Each item is a dict with currency, quantity, description, unit_price and
    optionally invoice (an uploaded file or a stored file name).
    """
    parse_month(month)
    for item in items:
        quantity = item.get("quantity")
        if quantity is not None and int(quantity) < 1:
            raise ValueError(f"Quantity must be at least 1, got {quantity}")

    report, created = ExpenseReport.objects.select_for_update().get_or_create(
        user=user,
        month=month,
        defaults={"user_name": user.name, "expense_period": expense_period(month)},
    )
    if not report.is_editable:
        raise ValueError(f"Report for {month} is {report.status} and cannot be edited")

    if report.status == ExpenseReport.Status.REJECTED and not submit:
        report.set_status(ExpenseReport.Status.DRAFT, by_user=user)

    report.user_name = user.name
    report.checked_by = (checked_by or "").strip()
    report.approved_by = (approved_by or "").strip()
    if exchange_rate_usd is not None:
        report.exchange_rate_usd = exchange_rate_usd
    if exchange_rate_eur is not None:
        report.exchange_rate_eur = exchange_rate_eur

    report.items.all().delete()
    for index, item in enumerate(items):
        ExpenseItem.objects.create(
            report=report,
            currency=item["currency"],
            quantity=1 if item.get("quantity") is None else int(item["quantity"]),
            description=item["description"],
            unit_price=item["unit_price"],
            invoice=item.get("invoice") or "",
            sort_order=index,
        )

    report.recalculate_totals()
    report.save()

    if submit:
        report.set_status(ExpenseReport.Status.SUBMITTED, by_user=user)

    logger.info(
        "User %s %s expense report %s (%d items, %s NIS)",
        user.pk, "submitted" if submit else "saved", month, len(items), report.grand_total_nis,
    )
    return report


def approve_report(admin, report: ExpenseReport, note: str = "") -> ExpenseReport:
    if not validate_admin(admin):
        raise PermissionDenied("not_authorized")
    report.set_status(ExpenseReport.Status.APPROVED, by_user=admin, note=note)
    logger.info("Expense report %s approved by %s", report.pk, admin.email)
    return report


def reject_report(admin, report: ExpenseReport, note: str = "") -> ExpenseReport:
    if not validate_admin(admin):
        raise PermissionDenied("not_authorized")
    report.set_status(ExpenseReport.Status.REJECTED, by_user=admin, note=note)
    logger.info("Expense report %s rejected by %s", report.pk, admin.email)
    return report


def can_delete_report(user, report: ExpenseReport) -> bool:
    if validate_admin(user):
        return True
    return report.user_id == user.pk and report.status == ExpenseReport.Status.DRAFT


def delete_report(user, report: ExpenseReport) -> None:
    """Owners may delete their drafts; admins may delete any report."""
    if not can_delete_report(user, report):
        raise PermissionDenied("not_authorized")
    report_id = report.pk
    report.delete()
    logger.info("Expense report %s deleted by %s", report_id, user.pk)


def reports_by_user(month: str) -> list[dict]:
    """The month's reports grouped per user, sorted by the user's current name."""
    parse_month(month)
    groups: dict[int, dict] = {}
    reports = ExpenseReport.objects.filter(month=month).select_related("user").prefetch_related("items")
    for report in reports:
        group = groups.setdefault(report.user_id, {"user": report.user, "reports": []})
        group["reports"].append(report)
    return sorted(groups.values(), key=lambda g: g["user"].name.lower())
