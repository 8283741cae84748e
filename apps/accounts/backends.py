"""Authentication backend: email + password, legacy passwords accepted."""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

from .passwords import verify_password


class EmailBackend(ModelBackend):
    """
    Authenticate by case-insensitive email.

    Disabled users never authenticate, and ModelBackend.get_user drops them
    from existing sessions through user_can_authenticate().
    """

    def authenticate(self, request, email=None, password=None, username=None, **kwargs):
        email = email or username or kwargs.get(get_user_model().USERNAME_FIELD)
        if not email or password is None:
            return None

        UserModel = get_user_model()
        user = UserModel._default_manager.filter(email__iexact=email.strip()).first()
        if user is None:
            # Run the hasher once to reduce the timing difference for unknown emails
            UserModel().set_password(password)
            return None

        if verify_password(user, password) and self.user_can_authenticate(user):
            return user
        return None
