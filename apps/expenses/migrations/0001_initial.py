from decimal import Decimal

import apps.expenses.models
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STATUS_CHOICES = [
    ("draft", "Draft"),
    ("submitted", "Submitted"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ExpenseReport",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_name", models.CharField(max_length=120)),
                ("month", models.CharField(max_length=7)),
                ("expense_period", models.CharField(blank=True, default="", max_length=20)),
                ("checked_by", models.CharField(blank=True, default="", max_length=120)),
                ("approved_by", models.CharField(blank=True, default="", max_length=120)),
                (
                    "exchange_rate_usd",
                    models.DecimalField(decimal_places=4, default=apps.expenses.models.default_usd_rate, max_digits=8),
                ),
                (
                    "exchange_rate_eur",
                    models.DecimalField(decimal_places=4, default=apps.expenses.models.default_eur_rate, max_digits=8),
                ),
                ("total_nis", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("total_usd", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("total_usd_in_nis", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("total_eur", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("total_eur_in_nis", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("grand_total_nis", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="draft", max_length=10)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("review_note", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "reviewed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_expense_reports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="expense_reports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-month", "user_name"],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "month"), name="unique_expense_report_per_user_per_month"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ExpenseItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "currency",
                    models.CharField(
                        choices=[("NIS", "NIS"), ("USD", "USD"), ("EUR", "EUR")],
                        default="NIS",
                        max_length=3,
                    ),
                ),
                (
                    "quantity",
                    models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("description", models.CharField(max_length=255)),
                (
                    "unit_price",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("line_total", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=12)),
                ("invoice", models.FileField(blank=True, upload_to="invoices/%Y/%m/")),
                ("sort_order", models.PositiveIntegerField(default=0)),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="expenses.expensereport",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
            },
        ),
        migrations.CreateModel(
            name="ExpenseStatusLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("changed_at", models.DateTimeField(auto_now_add=True)),
                ("old_status", models.CharField(choices=STATUS_CHOICES, max_length=10)),
                ("new_status", models.CharField(choices=STATUS_CHOICES, max_length=10)),
                ("note", models.TextField(blank=True, default="")),
                (
                    "changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="expense_status_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_logs",
                        to="expenses.expensereport",
                    ),
                ),
            ],
            options={
                "ordering": ["-changed_at"],
            },
        ),
    ]
