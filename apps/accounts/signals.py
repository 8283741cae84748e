"""Login/logout receivers that maintain the session token and snapshot."""

from django.contrib.auth.signals import user_logged_in, user_logged_out
from django.dispatch import receiver

from .sessions import forget_snapshot, issue_session_token


@receiver(user_logged_in)
def start_session_token(sender, request, user, **kwargs):
    if request is not None and hasattr(request, "session"):
        issue_session_token(request, user)


@receiver(user_logged_out)
def drop_session_snapshot(sender, request, user, **kwargs):
    if request is not None and hasattr(request, "session"):
        forget_snapshot(request)
