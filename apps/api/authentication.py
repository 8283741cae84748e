"""
Bearer token authentication for the REST API.

Clients send a personal access token issued with `manage.py issue_api_token`:
    Authorization: Bearer <token>
"""

from rest_framework import authentication, exceptions

from apps.accounts.models import PersonalAccessToken


class PersonalAccessTokenAuthentication(authentication.BaseAuthentication):
    """
    Authentication with a PersonalAccessToken.

    Only the SHA-256 hash of a token is stored. The token must be active
    (not revoked, not expired) and its user must not be disabled.
    Requests without a Bearer header fall through to the next authenticator.
    """

    keyword = "Bearer"

    def authenticate(self, request):
        parts = authentication.get_authorization_header(request).split()
        if not parts or parts[0].lower() != self.keyword.lower().encode():
            return None

        if len(parts) != 2:
            raise exceptions.AuthenticationFailed("Invalid Authorization header: expected 'Bearer <token>'")

        try:
            raw_token = parts[1].decode()
        except UnicodeError:
            raise exceptions.AuthenticationFailed("Invalid token characters")

        token = PersonalAccessToken.authenticate_raw_token(raw_token)
        if token is None:
            raise exceptions.AuthenticationFailed("Invalid or expired token")

        return (token.user, token)

    def authenticate_header(self, request):
        return self.keyword
