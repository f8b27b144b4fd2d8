"""
JWT authentication for the API.

Tokens are accepted from the ``Authorization: Bearer <jwt>`` header or,
for browser sessions started by the Google OAuth redirect, from the
``token`` cookie.  After the user is loaded the role specific profile
ids (``patient_id``, ``doctor_id``, ``clinic_id``) are attached to the
user object so views can scope their queries without another lookup.
"""
from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt import authentication

from .services.accounts import attach_role_ids


class JWTAuthentication(authentication.JWTAuthentication):
    """simplejwt authentication with a cookie fallback and role id injection."""

    www_authenticate_realm = 'api'

    def authenticate(self, request):
        header = self.get_header(request)
        if header is not None:
            raw_token = self.get_raw_token(header)
        else:
            raw_token = request.COOKIES.get(getattr(settings, 'JWT_AUTH_COOKIE', 'token'))
        if not raw_token:
            return None
        if isinstance(raw_token, str):
            raw_token = raw_token.encode()

        validated_token = self.get_validated_token(raw_token)
        user = self.get_user(validated_token)
        attach_role_ids(user)
        return user, validated_token
