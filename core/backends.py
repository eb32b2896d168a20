"""
Authentication backend that logs users in by email address.
"""

import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()
logger = logging.getLogger(__name__)


class EmailBackend(ModelBackend):
    """
    Authenticate with email and password instead of username.

    The lookup is case-insensitive and inactive accounts are refused.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        """
        Args:
            request: HTTP request object (may be None)
            username: Email address; admin login forms pass it under this name
            password: Raw password
            **kwargs: May carry 'email' instead of username

        Returns:
            User if the credentials match an active account, None otherwise
        """
        email = kwargs.get('email', username)

        if email is None or password is None:
            return None

        try:
            user = User.objects.get(email__iexact=email.strip())
        except User.DoesNotExist:
            # Hash anyway so response time does not reveal whether the email exists
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        logger.debug(f"Email authentication rejected for user ID: {user.id}")
        return None
