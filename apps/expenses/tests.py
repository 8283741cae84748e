"""
Tests for the expenses application.

This module tests:
- Line totals, report totals and status transitions
- save_report(), review and delete rules
- The report editor and the admin review pages

Uses Django TestCase with pytest-django compatibility.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.exceptions import PermissionDenied
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import IntegrityError
from django.test import TestCase
from django.urls import reverse

from . import services
from .exports import build_report_pdf, currency_sections, money
from .forms import ExpenseReportForm
from .models import Currency, ExpenseItem, ExpenseReport, ExpenseStatusLog

User = get_user_model()

MONTH = "2026-02"


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_user(email="user@example.com", password="testpass123", name="Test User", **kwargs):
    """Create and return a test user."""
    return User.objects.create_user(email=email, password=password, name=name, **kwargs)


def create_admin(email="admin@example.com", password="adminpass123", name="Admin User"):
    """Create and return an admin."""
    return create_user(email=email, password=password, name=name, is_admin=True)


def item(description="Taxi", currency=Currency.NIS, quantity=1, unit_price="10.00", **kwargs):
    """An item dict as accepted by save_report()."""
    return {
        "description": description,
        "currency": currency,
        "quantity": quantity,
        "unit_price": Decimal(unit_price),
        **kwargs,
    }


def create_report(user, month=MONTH, items=None, submit=False, **kwargs):
    """Create and return a report through the service layer."""
    return services.save_report(user, month, items if items is not None else [item()], submit=submit, **kwargs)


def formset_data(rows, total=None):
    """POST data for the item formset."""
    data = {
        "items-TOTAL_FORMS": str(total if total is not None else len(rows)),
        "items-INITIAL_FORMS": "0",
        "items-MIN_NUM_FORMS": "0",
        "items-MAX_NUM_FORMS": "1000",
    }
    for index, row in enumerate(rows):
        for key, value in row.items():
            data[f"items-{index}-{key}"] = value
    return data


# =============================================================================
# MODEL TESTS
# =============================================================================


class ExpenseItemModelTests(TestCase):
    """Tests for ExpenseItem."""

    def setUp(self):
        user = create_user()
        self.report = ExpenseReport.objects.create(user=user, user_name=user.name, month=MONTH)

    def test_line_total_is_quantity_times_price(self):
        line = ExpenseItem.objects.create(
            report=self.report, currency=Currency.USD, quantity=3, description="Meal", unit_price=Decimal("12.35"),
        )

        self.assertEqual(line.line_total, Decimal("37.05"))

    def test_line_total_rounds_half_up(self):
        line = ExpenseItem.objects.create(
            report=self.report, quantity=1, description="Odd", unit_price=Decimal("0.125"),
        )

        self.assertEqual(line.line_total, Decimal("0.13"))

    def test_currency_symbol(self):
        line = ExpenseItem(currency=Currency.EUR)

        self.assertEqual(line.currency_symbol, "€")


class ExpenseReportModelTests(TestCase):
    """Tests for ExpenseReport totals and status changes."""

    def setUp(self):
        self.user = create_user()
        self.admin = create_admin()
        self.report = ExpenseReport.objects.create(
            user=self.user,
            user_name=self.user.name,
            month=MONTH,
            exchange_rate_usd=Decimal("3.5"),
            exchange_rate_eur=Decimal("4"),
        )

    def test_defaults(self):
        report = ExpenseReport.objects.create(user=self.admin, user_name="Admin", month=MONTH)

        self.assertEqual(report.status, ExpenseReport.Status.DRAFT)
        self.assertEqual(report.expense_period, "Feb, 2026")
        self.assertEqual(report.exchange_rate_usd, Decimal("3.12"))
        self.assertEqual(report.exchange_rate_eur, Decimal("3.68"))

    def test_one_report_per_user_per_month(self):
        with self.assertRaises(IntegrityError):
            ExpenseReport.objects.create(user=self.user, user_name=self.user.name, month=MONTH)

    def test_recalculate_totals_per_currency(self):
        ExpenseItem.objects.create(report=self.report, currency=Currency.NIS, quantity=2, description="a", unit_price=Decimal("50"))
        ExpenseItem.objects.create(report=self.report, currency=Currency.USD, quantity=1, description="b", unit_price=Decimal("10"))
        ExpenseItem.objects.create(report=self.report, currency=Currency.EUR, quantity=1, description="c", unit_price=Decimal("20"))

        self.report.recalculate_totals()

        self.assertEqual(self.report.total_nis, Decimal("100.00"))
        self.assertEqual(self.report.total_usd, Decimal("10.00"))
        self.assertEqual(self.report.total_usd_in_nis, Decimal("35.00"))
        self.assertEqual(self.report.total_eur, Decimal("20.00"))
        self.assertEqual(self.report.total_eur_in_nis, Decimal("80.00"))
        self.assertEqual(self.report.grand_total_nis, Decimal("215.00"))

    def test_is_editable(self):
        self.assertTrue(self.report.is_editable)
        self.report.status = ExpenseReport.Status.SUBMITTED
        self.assertFalse(self.report.is_editable)
        self.report.status = ExpenseReport.Status.REJECTED
        self.assertTrue(self.report.is_editable)

    def test_set_status_logs_change(self):
        self.report.set_status(ExpenseReport.Status.SUBMITTED, by_user=self.user)

        log = ExpenseStatusLog.objects.get(report=self.report)
        self.assertEqual(log.old_status, ExpenseReport.Status.DRAFT)
        self.assertEqual(log.new_status, ExpenseReport.Status.SUBMITTED)
        self.assertEqual(log.changed_by, self.user)

    def test_approval_records_reviewer(self):
        self.report.set_status(ExpenseReport.Status.SUBMITTED, by_user=self.user)

        self.report.set_status(ExpenseReport.Status.APPROVED, by_user=self.admin, note="ok")

        self.report.refresh_from_db()
        self.assertEqual(self.report.reviewed_by, self.admin)
        self.assertIsNotNone(self.report.reviewed_at)
        self.assertEqual(self.report.review_note, "ok")

    def test_disallowed_transitions_raise(self):
        with self.assertRaises(ValueError):
            self.report.set_status(ExpenseReport.Status.APPROVED, by_user=self.admin)

        self.report.set_status(ExpenseReport.Status.SUBMITTED)
        self.report.set_status(ExpenseReport.Status.APPROVED)

        for target in ExpenseReport.Status.values:
            with self.assertRaises(ValueError):
                self.report.set_status(target)


# =============================================================================
# SERVICE TESTS
# =============================================================================


class SaveReportTests(TestCase):
    """Tests for save_report()."""

    def setUp(self):
        self.user = create_user()

    def test_creates_report_with_items_and_totals(self):
        report = create_report(self.user, items=[
            item("Hotel", Currency.USD, 2, "100.00"),
            item("Taxi", Currency.NIS, 1, "45.50"),
        ], exchange_rate_usd=Decimal("3.5"))

        self.assertEqual(report.items.count(), 2)
        self.assertEqual(report.expense_period, "Feb, 2026")
        self.assertEqual(report.total_usd_in_nis, Decimal("700.00"))
        self.assertEqual(report.grand_total_nis, Decimal("745.50"))
        self.assertEqual([i.description for i in report.items.all()], ["Hotel", "Taxi"])

    def test_saving_again_replaces_items(self):
        create_report(self.user, items=[item("Old"), item("Older")])

        report = create_report(self.user, items=[item("New", unit_price="5.00")])

        self.assertEqual(ExpenseReport.objects.count(), 1)
        self.assertEqual([i.description for i in report.items.all()], ["New"])
        self.assertEqual(report.grand_total_nis, Decimal("5.00"))

    def test_zero_quantity_is_rejected_and_keeps_items(self):
        create_report(self.user, items=[item("Kept")])

        with self.assertRaises(ValueError):
            create_report(self.user, items=[item("Free lunch", quantity=0)])

        report = ExpenseReport.objects.get(user=self.user)
        self.assertEqual([i.description for i in report.items.all()], ["Kept"])

    def test_missing_quantity_defaults_to_one(self):
        row = item("Taxi", unit_price="12.00")
        del row["quantity"]

        report = create_report(self.user, items=[row])

        self.assertEqual(report.items.get().quantity, 1)
        self.assertEqual(report.grand_total_nis, Decimal("12.00"))

    def test_header_fields_are_stored(self):
        report = create_report(self.user, checked_by=" Dana ", approved_by="Eli")

        self.assertEqual(report.checked_by, "Dana")
        self.assertEqual(report.approved_by, "Eli")

    def test_submit(self):
        report = create_report(self.user, submit=True)

        self.assertEqual(report.status, ExpenseReport.Status.SUBMITTED)

    def test_submitted_report_cannot_be_edited(self):
        create_report(self.user, submit=True)

        with self.assertRaises(ValueError):
            create_report(self.user)

    def test_rejected_report_returns_to_draft_on_save(self):
        admin = create_admin()
        report = create_report(self.user, submit=True)
        services.reject_report(admin, report, "missing invoice")

        report = create_report(self.user)

        self.assertEqual(report.status, ExpenseReport.Status.DRAFT)

    def test_rejected_report_can_be_resubmitted(self):
        admin = create_admin()
        report = create_report(self.user, submit=True)
        services.reject_report(admin, report)

        report = create_report(self.user, submit=True)

        self.assertEqual(report.status, ExpenseReport.Status.SUBMITTED)

    def test_invalid_month_raises(self):
        with self.assertRaises(ValueError):
            services.save_report(self.user, "Feb 2026", [item()])

    def test_invoice_is_stored(self):
        invoice = SimpleUploadedFile("receipt.pdf", b"%PDF-1.4", content_type="application/pdf")

        report = create_report(self.user, items=[item(invoice=invoice)])

        self.assertTrue(report.items.get().invoice.name.endswith(".pdf"))


class ReviewTests(TestCase):
    """Tests for approve_report(), reject_report() and delete rules."""

    def setUp(self):
        self.user = create_user()
        self.admin = create_admin()
        self.report = create_report(self.user, submit=True)

    def test_admin_approves(self):
        services.approve_report(self.admin, self.report, "fine")

        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ExpenseReport.Status.APPROVED)
        self.assertEqual(self.report.reviewed_by, self.admin)

    def test_non_admin_cannot_approve(self):
        with self.assertRaises(PermissionDenied):
            services.approve_report(self.user, self.report)

    def test_revoked_admin_cannot_reject(self):
        User.objects.filter(pk=self.admin.pk).update(is_admin=False)

        with self.assertRaises(PermissionDenied):
            services.reject_report(self.admin, self.report)

    def test_approving_draft_raises(self):
        draft = create_report(self.admin)

        with self.assertRaises(ValueError):
            services.approve_report(self.admin, draft)

    def test_owner_can_delete_draft_only(self):
        draft = create_report(self.user, month="2026-03")

        self.assertTrue(services.can_delete_report(self.user, draft))
        self.assertFalse(services.can_delete_report(self.user, self.report))

        with self.assertRaises(PermissionDenied):
            services.delete_report(self.user, self.report)

    def test_other_user_cannot_delete_draft(self):
        other = create_user(email="other@example.com")
        draft = create_report(self.user, month="2026-03")

        self.assertFalse(services.can_delete_report(other, draft))

    def test_admin_can_delete_any_report(self):
        services.delete_report(self.admin, self.report)

        self.assertFalse(ExpenseReport.objects.filter(pk=self.report.pk).exists())

    def test_reports_by_user_groups_by_current_name(self):
        zed = create_user(email="zed@example.com", name="Zed")
        create_report(zed)
        User.objects.filter(pk=self.user.pk).update(name="Aaron")

        groups = services.reports_by_user(MONTH)

        self.assertEqual([g["user"].name for g in groups], ["Aaron", "Zed"])


class ExpenseReportFormTests(TestCase):
    """Tests for the report header form."""

    def test_rates_must_be_positive(self):
        form = ExpenseReportForm(data={
            "exchange_rate_usd": "0",
            "exchange_rate_eur": "3.68",
            "checked_by": "",
            "approved_by": "",
        })

        self.assertFalse(form.is_valid())
        self.assertIn("exchange_rate_usd", form.errors)


# =============================================================================
# VIEW TESTS
# =============================================================================


class ReportViewTests(TestCase):
    """Tests for the monthly report editor."""

    def setUp(self):
        self.user = create_user()
        self.client.login(email="user@example.com", password="testpass123")
        self.url = reverse("expenses:report")

    def _post(self, rows, action="save", **extra):
        data = {
            "month": MONTH,
            "action": action,
            "exchange_rate_usd": "3.5",
            "exchange_rate_eur": "3.68",
            "checked_by": "",
            "approved_by": "",
            **formset_data(rows),
            **extra,
        }
        return self.client.post(self.url, data)

    def test_get_renders_empty_editor(self):
        response = self.client.get(self.url, {"month": MONTH})

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.context["report"])
        self.assertEqual(response.context["period"], "Feb, 2026")
        self.assertTrue(response.context["editable"])

    def test_save_creates_report(self):
        response = self._post([
            {"currency": "USD", "quantity": "2", "description": "Hotel", "unit_price": "100.00"},
        ])

        self.assertRedirects(response, f"{self.url}?month={MONTH}")
        report = ExpenseReport.objects.get(user=self.user, month=MONTH)
        self.assertEqual(report.status, ExpenseReport.Status.DRAFT)
        self.assertEqual(report.grand_total_nis, Decimal("700.00"))

    def test_submit(self):
        self._post([{"currency": "NIS", "quantity": "1", "description": "Taxi", "unit_price": "30"}], action="submit")

        report = ExpenseReport.objects.get(user=self.user, month=MONTH)
        self.assertEqual(report.status, ExpenseReport.Status.SUBMITTED)

    def test_submit_without_items_is_refused(self):
        response = self._post([{"currency": "NIS", "quantity": "1", "description": "", "unit_price": ""}], action="submit")

        self.assertRedirects(response, f"{self.url}?month={MONTH}")
        self.assertFalse(ExpenseReport.objects.exists())

    def test_invalid_item_rerenders_with_errors(self):
        response = self._post([{"currency": "NIS", "quantity": "1", "description": "Taxi", "unit_price": "-5"}])

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.context["formset"].errors[0])
        self.assertFalse(ExpenseReport.objects.exists())

    def test_submitted_report_is_read_only(self):
        create_report(self.user, submit=True)

        self._post([{"currency": "NIS", "quantity": "1", "description": "Changed", "unit_price": "1"}])

        report = ExpenseReport.objects.get(user=self.user, month=MONTH)
        self.assertEqual([i.description for i in report.items.all()], ["Taxi"])

    def test_delete_draft(self):
        report = create_report(self.user)

        self.client.post(reverse("expenses:report_delete", args=[report.pk]))

        self.assertFalse(ExpenseReport.objects.filter(pk=report.pk).exists())

    def test_delete_submitted_is_refused(self):
        report = create_report(self.user, submit=True)

        response = self.client.post(reverse("expenses:report_delete", args=[report.pk]), follow=True)

        self.assertContains(response, "Only draft reports can be deleted.")
        self.assertTrue(ExpenseReport.objects.filter(pk=report.pk).exists())


class AdminReportViewTests(TestCase):
    """Tests for the admin review page."""

    def setUp(self):
        self.user = create_user()
        self.admin = create_admin()
        self.report = create_report(self.user, submit=True)
        self.client.login(email="admin@example.com", password="adminpass123")

    def test_lists_month_reports(self):
        response = self.client.get(reverse("expenses:admin_reports"), {"month": MONTH})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Test User")

    def test_non_admin_is_redirected(self):
        self.client.logout()
        self.client.login(email="user@example.com", password="testpass123")

        response = self.client.get(reverse("expenses:admin_reports"))

        self.assertRedirects(response, reverse("attendance:home"))

    def test_approve(self):
        response = self.client.post(reverse("expenses:report_review", args=[self.report.pk]), {"action": "approve"})

        self.assertRedirects(response, f"{reverse('expenses:admin_reports')}?month={MONTH}")
        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ExpenseReport.Status.APPROVED)

    def test_reject_with_note(self):
        self.client.post(reverse("expenses:report_review", args=[self.report.pk]), {
            "action": "reject",
            "note": "Missing receipt",
        })

        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ExpenseReport.Status.REJECTED)
        self.assertEqual(self.report.review_note, "Missing receipt")

    def test_approving_twice_shows_error(self):
        url = reverse("expenses:report_review", args=[self.report.pk])
        self.client.post(url, {"action": "approve"})

        response = self.client.post(url, {"action": "approve"}, follow=True)

        self.assertContains(response, "Cannot change report status")

    def test_report_pdf_download(self):
        response = self.client.get(reverse("expenses:report_pdf", args=[self.report.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "application/pdf")
        self.assertIn("expense_report_Test_User_2026-02.pdf", response["Content-Disposition"])
        self.assertTrue(response.content.startswith(b"%PDF"))

    def test_report_pdf_is_admin_only(self):
        self.client.logout()
        self.client.login(email="user@example.com", password="testpass123")

        response = self.client.get(reverse("expenses:report_pdf", args=[self.report.pk]))

        self.assertRedirects(response, reverse("attendance:home"))


# =============================================================================
# EXPORT TESTS
# =============================================================================


class ReportPdfTests(TestCase):
    """Tests for the expense report PDF."""

    def setUp(self):
        self.user = create_user()

    def test_sections_only_for_used_currencies(self):
        report = create_report(self.user, items=[
            item("Taxi", Currency.NIS, 1, "45.50"),
            item("Hotel", Currency.USD, 2, "100.00"),
        ], exchange_rate_usd=Decimal("3.5"))

        sections = currency_sections(report)

        self.assertEqual([s["currency"] for s in sections], ["NIS", "USD"])
        self.assertIsNone(sections[0]["rate"])
        self.assertEqual(sections[1]["rate"], Decimal("3.5"))
        self.assertEqual(sections[1]["total_in_nis"], Decimal("700.00"))
        self.assertEqual([i.description for i in sections[1]["items"]], ["Hotel"])

    def test_money_format(self):
        self.assertEqual(money(Decimal("1234.5"), "USD"), "USD 1,234.50")

    def test_builds_pdf_with_markup_in_names(self):
        report = create_report(self.user, items=[item("Lunch <team> & guests")], checked_by="A & B")

        content = build_report_pdf(report)

        self.assertTrue(content.startswith(b"%PDF"))

    def test_empty_report_still_renders(self):
        report = create_report(self.user, items=[])

        self.assertEqual(currency_sections(report), [])
        self.assertTrue(build_report_pdf(report).startswith(b"%PDF"))
