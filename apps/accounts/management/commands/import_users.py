"""
Import users from an exported JSON array.

Each entry needs at least "email". Recognised keys: name, email, password,
isAdmin, isDisabled, department, profilePicture, createdAt. Passwords are
stored unchanged so legacy plain-text or sha256 values upgrade on first login.

Usage:
    python manage.py import_users users.json
"""

import json
from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.dateparse import parse_datetime


class Command(BaseCommand):
    help = "Create or update users from a JSON export"

    def add_arguments(self, parser):
        parser.add_argument("path", help="Path to a JSON file with a list of users")

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.exists():
            raise CommandError(f"File not found: {path}")

        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CommandError(f"Failed to parse {path}: {exc}") from exc
        if not isinstance(rows, list):
            raise CommandError("Expected a JSON array of users")

        User = get_user_model()
        created = updated = skipped = 0

        with transaction.atomic():
            for row in rows:
                email = (row.get("email") or "").strip().lower()
                if not email:
                    skipped += 1
                    self.stderr.write(f"Skipping entry without email: {row!r}")
                    continue

                defaults = {
                    "name": row.get("name") or email.split("@")[0],
                    "is_admin": bool(row.get("isAdmin")),
                    "is_disabled": bool(row.get("isDisabled")),
                    "department": row.get("department") or "",
                    "profile_picture": row.get("profilePicture") or "",
                }
                if row.get("password"):
                    defaults["password"] = row["password"]
                created_at = parse_datetime(row.get("createdAt") or "")
                if created_at:
                    defaults["created_at"] = created_at

                user, was_created = User.objects.update_or_create(email=email, defaults=defaults)
                if was_created and not row.get("password"):
                    user.set_unusable_password()
                    user.save(update_fields=["password"])

                if was_created:
                    created += 1
                else:
                    updated += 1

        self.stdout.write(self.style.SUCCESS(
            f"Imported users: {created} created, {updated} updated, {skipped} skipped"
        ))
