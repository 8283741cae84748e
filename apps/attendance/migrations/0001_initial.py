import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Shift",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("user_name", models.CharField(max_length=120)),
                ("date", models.DateField()),
                ("check_in", models.DateTimeField()),
                ("check_out", models.DateTimeField(blank=True, null=True)),
                ("note", models.TextField(blank=True, default="")),
                ("duration", models.PositiveIntegerField(default=0)),
                ("break_minutes", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shifts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-date", "-check_in"],
                "indexes": [models.Index(fields=["date"], name="attendance_shift_date_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "date"), name="unique_shift_per_user_per_day"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ActiveShift",
            fields=[
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="active_shift",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                ("user_name", models.CharField(max_length=120)),
                ("check_in", models.DateTimeField()),
                ("note", models.TextField(blank=True, default="")),
                (
                    "day_type",
                    models.CharField(
                        choices=[("office", "Office"), ("home", "Home"), ("sick", "Sick"), ("other", "Other")],
                        default="office",
                        max_length=10,
                    ),
                ),
            ],
            options={
                "ordering": ["-check_in"],
            },
        ),
    ]
