"""Middleware that re-validates logged-in sessions on every request."""

from django.http import HttpResponse

from .sessions import validate_session

RETRY_AFTER_SECONDS = 30


class SessionValidationMiddleware:
    """
    Must come after AuthenticationMiddleware.

    Requests authenticated by API token carry no session and pass straight
    through. When the user cannot be loaded because the database is down the
    session is kept and the request is answered with 503.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        validate_session(request)
        if getattr(request, "database_unavailable", False):
            response = HttpResponse("Service temporarily unavailable. Please try again shortly.", status=503)
            response["Retry-After"] = str(RETRY_AFTER_SECONDS)
            return response
        return self.get_response(request)
