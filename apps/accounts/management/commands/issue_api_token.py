"""
Issue a personal access token for the REST API.

Usage:
    python manage.py issue_api_token user@example.com "payroll export" --ttl-hours 720
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from apps.accounts.models import PersonalAccessToken


class Command(BaseCommand):
    help = "Issue an API token and print it once"

    def add_arguments(self, parser):
        parser.add_argument("email")
        parser.add_argument("label")
        parser.add_argument("--ttl-hours", type=int, default=None, help="Expire the token after N hours")

    def handle(self, *args, **options):
        User = get_user_model()
        user = User.objects.filter(email__iexact=options["email"].strip()).first()
        if user is None:
            raise CommandError(f"No user with email {options['email']}")
        if user.is_disabled:
            raise CommandError(f"User {user.email} is disabled")

        token, raw = PersonalAccessToken.issue(user=user, label=options["label"], ttl_hours=options["ttl_hours"])
        self.stdout.write(self.style.SUCCESS(f"Token '{token.label}' issued for {user.email}"))
        if token.expires_at:
            self.stdout.write(f"Expires: {token.expires_at.isoformat()}")
        self.stdout.write(raw)
