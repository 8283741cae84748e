# models.py (Django 5.x) - Timeclock expenses
#
# One expense report per user per month. Items are entered in NIS, USD or
# EUR and totalled in NIS using the report's exchange rates.
# Status: draft -> submitted -> approved | rejected

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from apps.core.months import expense_period

TWO_PLACES = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def default_usd_rate() -> Decimal:
    return settings.EXPENSE_DEFAULT_EXCHANGE_RATES["USD"]


def default_eur_rate() -> Decimal:
    return settings.EXPENSE_DEFAULT_EXCHANGE_RATES["EUR"]


class Currency(models.TextChoices):
    NIS = "NIS", "NIS"
    USD = "USD", "USD"
    EUR = "EUR", "EUR"


CURRENCY_SYMBOLS = {
    Currency.NIS: "₪",
    Currency.USD: "$",
    Currency.EUR: "€",
}


class ExpenseReport(models.Model):
    """A user's expenses for one month."""
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        SUBMITTED = "submitted", "Submitted"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    # Allowed status changes
    TRANSITIONS = {
        Status.DRAFT: {Status.SUBMITTED},
        Status.SUBMITTED: {Status.APPROVED, Status.REJECTED},
        Status.REJECTED: {Status.DRAFT, Status.SUBMITTED},
        Status.APPROVED: set(),
    }

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="expense_reports")
    user_name = models.CharField(max_length=120)
    month = models.CharField(max_length=7)  # "2026-02"
    expense_period = models.CharField(max_length=20, blank=True, default="")  # "Feb, 2026"
    checked_by = models.CharField(max_length=120, blank=True, default="")
    approved_by = models.CharField(max_length=120, blank=True, default="")

    # NIS per unit of foreign currency
    exchange_rate_usd = models.DecimalField(max_digits=8, decimal_places=4, default=default_usd_rate)
    exchange_rate_eur = models.DecimalField(max_digits=8, decimal_places=4, default=default_eur_rate)

    total_nis = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_usd = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_usd_in_nis = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_eur = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    total_eur_in_nis = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    grand_total_nis = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.DRAFT)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_expense_reports",
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_note = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-month", "user_name"]
        constraints = [
            models.UniqueConstraint(fields=["user", "month"], name="unique_expense_report_per_user_per_month"),
        ]

    def __str__(self) -> str:
        return f"{self.user_name} {self.month}"

    def save(self, *args, **kwargs):
        if self.month and not self.expense_period:
            self.expense_period = expense_period(self.month)
        super().save(*args, **kwargs)

    @property
    def is_editable(self) -> bool:
        return self.status in (self.Status.DRAFT, self.Status.REJECTED)

    def recalculate_totals(self) -> None:
        """Recompute the stored totals from the items. Does not save."""
        sums = {currency: Decimal("0") for currency in Currency.values}
        for item in self.items.all():
            sums[item.currency] += item.line_total

        self.total_nis = _money(sums[Currency.NIS])
        self.total_usd = _money(sums[Currency.USD])
        self.total_eur = _money(sums[Currency.EUR])
        self.total_usd_in_nis = _money(sums[Currency.USD] * Decimal(self.exchange_rate_usd))
        self.total_eur_in_nis = _money(sums[Currency.EUR] * Decimal(self.exchange_rate_eur))
        self.grand_total_nis = _money(self.total_nis + self.total_usd_in_nis + self.total_eur_in_nis)

    def set_status(self, new_status: str, by_user=None, note: str = "") -> None:
        """Change status and log the change. Raises ValueError for a disallowed change."""
        old_status = self.status
        if new_status not in self.TRANSITIONS.get(old_status, set()):
            raise ValueError(f"Cannot change report status from {old_status} to {new_status}")

        self.status = new_status
        update_fields = ["status", "updated_at"]
        if new_status in (self.Status.APPROVED, self.Status.REJECTED):
            self.reviewed_by = by_user
            self.reviewed_at = timezone.now()
            self.review_note = note
            update_fields += ["reviewed_by", "reviewed_at", "review_note"]
        self.save(update_fields=update_fields)

        ExpenseStatusLog.objects.create(
            report=self,
            changed_by=by_user,
            old_status=old_status,
            new_status=new_status,
            note=note,
        )


class ExpenseItem(models.Model):
    """One line on an expense report."""
    report = models.ForeignKey(ExpenseReport, on_delete=models.CASCADE, related_name="items")
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.NIS)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    description = models.CharField(max_length=255)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0"))
    invoice = models.FileField(upload_to="invoices/%Y/%m/", blank=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "id"]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.description} ({self.currency})"

    @property
    def currency_symbol(self) -> str:
        return CURRENCY_SYMBOLS.get(self.currency, "")

    def save(self, *args, **kwargs):
        self.line_total = _money(Decimal(self.quantity or 0) * Decimal(str(self.unit_price or 0)))
        super().save(*args, **kwargs)


class ExpenseStatusLog(models.Model):
    """Audit trail for report status changes."""
    report = models.ForeignKey(ExpenseReport, on_delete=models.CASCADE, related_name="status_logs")
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="expense_status_changes",
    )
    changed_at = models.DateTimeField(auto_now_add=True)
    old_status = models.CharField(max_length=10, choices=ExpenseReport.Status.choices)
    new_status = models.CharField(max_length=10, choices=ExpenseReport.Status.choices)
    note = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-changed_at"]

    def __str__(self) -> str:
        return f"{self.report} {self.old_status} -> {self.new_status}"
