import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction

from clinic.models import Patient
from clinic.services.accounts import create_patient_record, create_user

User = get_user_model()
logger = logging.getLogger(__name__)

AUTH_URL = 'https://accounts.google.com/o/oauth2/v2/auth'
TOKEN_URL = 'https://oauth2.googleapis.com/token'
USERINFO_URL = 'https://openidconnect.googleapis.com/v1/userinfo'


@dataclass
class GoogleProfile:
    email: str
    name: str
    sub: Optional[str] = None
    picture: Optional[str] = None


def is_configured() -> bool:
    return bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET)


def authorization_url(state: str) -> str:
    params = {
        'client_id': settings.GOOGLE_CLIENT_ID,
        'redirect_uri': settings.GOOGLE_CALLBACK_URL,
        'response_type': 'code',
        'scope': 'openid email profile',
        'state': state,
        'prompt': 'select_account',
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code(code: str) -> GoogleProfile:
    if not is_configured():
        raise RuntimeError('Google OAuth not configured on server')
    r = requests.post(TOKEN_URL, data={
        'code': code,
        'client_id': settings.GOOGLE_CLIENT_ID,
        'client_secret': settings.GOOGLE_CLIENT_SECRET,
        'redirect_uri': settings.GOOGLE_CALLBACK_URL,
        'grant_type': 'authorization_code',
    }, timeout=settings.GOOGLE_TIMEOUT)
    r.raise_for_status()
    access_token = r.json().get('access_token')
    if not access_token:
        raise RuntimeError('Invalid response from Google: missing access_token')

    r = requests.get(USERINFO_URL, headers={'Authorization': f'Bearer {access_token}'},
                     timeout=settings.GOOGLE_TIMEOUT)
    r.raise_for_status()
    data = r.json()
    email = data.get('email')
    if not email:
        raise RuntimeError('No email provided by Google')
    return GoogleProfile(email=email, name=data.get('name') or 'Google User',
                         sub=data.get('sub'), picture=data.get('picture'))


def _ensure_patient(user, full_name: str) -> Optional[Patient]:
    """Create the linked patient row; a failure here must not block sign-in."""
    try:
        with transaction.atomic():
            existing = Patient.objects.filter(user=user).first()
            if existing:
                return existing
            orphan = Patient.objects.filter(user__isnull=True, email__iexact=user.email).first()
            if orphan:
                orphan.user = user
                orphan.save(update_fields=['user', 'updated_at'])
                return orphan
            return create_patient_record(user=user, full_name=full_name, email=user.email)
    except Exception:
        logger.warning('could not create patient record for user %s', user.pk, exc_info=True)
        return None


def find_or_create_user(profile: GoogleProfile):
    """Return ``(user, is_new)`` for a Google profile, matched by email."""
    user = User.objects.filter(email__iexact=profile.email).first()
    is_new = user is None
    if is_new:
        user = create_user(email=profile.email, password=None, full_name=profile.name, role='patient')
        _ensure_patient(user, profile.name)
    elif user.role == 'patient':
        _ensure_patient(user, user.full_name or profile.name)
    return user, is_new
