"""
Authentication backend for the Django admin.

API requests authenticate with bearer tokens (CompanyContextMiddleware);
this backend only serves the admin's session login.
"""
from django.contrib.auth.backends import BaseBackend
from django.contrib.auth import get_user_model

User = get_user_model()


class EmailAuthBackend(BaseBackend):
    """
    Authenticate using email address instead of username.

    Only superusers may sign in; company roles and the platform-operator
    flag grant nothing in the admin.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        # Django admin passes email as 'username' parameter
        email = username or kwargs.get('email')

        if not email or not password:
            return None

        user = User.objects.by_email(email)
        if user is None:
            # Hash anyway to keep timing similar for unknown emails
            User().set_password(password)
            return None

        if user.is_active and user.is_superuser and user.check_password(password):
            return user
        return None

    def get_user(self, user_id):
        try:
            return User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValueError):
            return None
