"""
Authentication views.

Email/password login and registration for every role, the Google
OAuth redirect flow, the demo OTP check and JWT refresh / logout.  All
tokens are simplejwt tokens carrying the user id and role.
"""
from __future__ import annotations

import json
import logging
import secrets
from urllib.parse import urlencode

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.shortcuts import redirect
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenRefreshView

from . import responses
from .serializers.auth import (
    ClinicRegistrationSerializer,
    DoctorRegistrationSerializer,
    LoginSerializer,
    OtpSerializer,
    RegisterSerializer,
)
from .services import accounts, google
from .services.audit import log_action

User = get_user_model()
logger = logging.getLogger(__name__)

OAUTH_STATE_KEY = 'google_oauth_state'


def _client_ip(request):
    return request.META.get('REMOTE_ADDR')


def _token_payload(user, **extra) -> dict:
    refresh = accounts.issue_tokens(user)
    payload = {
        'success': True,
        'token': str(refresh.access_token),
        'refresh': str(refresh),
        'user': accounts.user_payload(user),
    }
    payload.update(extra)
    return payload


# ---------------------------------------------------------------------
# Email/password (no role bypass)
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    if accounts.email_taken(vd['email']):
        return responses.bad_request('User already exists')

    user = accounts.register_user(full_name=vd['full_name'], email=vd['email'], password=vd['password'],
                                  role=vd['role'])
    log_action(user=user, action='register', object_type='user', object_id=user.id,
               detail={'role': user.role, 'ip': _client_ip(request)})
    return Response(_token_payload(user), status=201)

# ScopedRateThrottle reads the scope from the wrapped view class
register_view.cls.throttle_scope = 'register'


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """Login with email and password.  A ``role`` field in the body is ignored."""
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']
    password = s.validated_data['password']

    user = authenticate(request, username=email, password=password)
    if not user:
        log_action(user=None, action='login', object_type='user',
                   detail={'result': 'fail', 'email': email, 'ip': _client_ip(request)})
        return responses.unauthorized('Invalid credentials')

    log_action(user=user, action='login', object_type='user', object_id=user.id,
               detail={'result': 'ok', 'ip': _client_ip(request)})
    return Response(_token_payload(user))

login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def register_doctor_view(request):
    s = DoctorRegistrationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    if accounts.email_taken(s.validated_data['email']):
        return responses.bad_request('User already exists with this email')

    user, doctor = accounts.register_doctor(s.validated_data)
    log_action(user=user, action='register_doctor', object_type='doctor', object_id=doctor.id,
               detail={'ip': _client_ip(request)})
    return Response(_token_payload(user, doctor={
        'id': doctor.id,
        'full_name': doctor.full_name,
        'email': doctor.email,
        'verification_status': doctor.verification_status,
    }))

register_doctor_view.cls.throttle_scope = 'register'


@api_view(['POST'])
@permission_classes([AllowAny])
def register_clinic_view(request):
    s = ClinicRegistrationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    if accounts.email_taken(s.validated_data['email']):
        return responses.bad_request('User already exists with this email')

    user, clinic = accounts.register_clinic(s.validated_data)
    log_action(user=user, action='register_clinic', object_type='clinic', object_id=clinic.id,
               detail={'ip': _client_ip(request)})
    refresh = accounts.issue_tokens(user)
    return responses.success({
        'token': str(refresh.access_token),
        'refresh': str(refresh),
        'user': accounts.user_payload(user),
        'clinic': {
            'id': clinic.id,
            'clinic_name': clinic.clinic_name,
            'verification_status': clinic.verification_status,
        },
    }, 'Clinic registration successful')

register_clinic_view.cls.throttle_scope = 'register'


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    user = request.user
    data = accounts.user_payload(user)
    data.update({
        'mobile_number': user.mobile_number,
        'patient_id': accounts.role_id(user, 'patient_id'),
        'doctor_id': accounts.role_id(user, 'doctor_id'),
        'clinic_id': accounts.role_id(user, 'clinic_id'),
    })
    return responses.success(data)


@api_view(['POST'])
@permission_classes([AllowAny])
def verify_otp_view(request):
    """Demo OTP check; only available when ``OTP_DEMO_CODE`` is configured."""
    if not settings.OTP_DEMO_CODE:
        return responses.error('OTP verification is not enabled', 501)
    s = OtpSerializer(data=request.data)
    if not s.is_valid():
        return responses.bad_request('Email and OTP are required', errors=s.errors)
    if not secrets.compare_digest(s.validated_data['otp'], settings.OTP_DEMO_CODE):
        return responses.bad_request('Invalid OTP')
    user = User.objects.filter(email__iexact=s.validated_data['email']).first()
    if not user:
        return responses.bad_request('User not found')
    log_action(user=user, action='verify_otp', object_type='user', object_id=user.id,
               detail={'ip': _client_ip(request)})
    return Response(_token_payload(user, message='OTP verified successfully'))

verify_otp_view.cls.throttle_scope = 'login'


# ---------------------------------------------------------------------
# Google OAuth
# ---------------------------------------------------------------------
def _frontend_redirect(**params):
    return redirect(f"{settings.FRONTEND_URL.rstrip('/')}?{urlencode(params)}")


@api_view(['GET'])
@permission_classes([AllowAny])
def google_auth_view(request):
    if not google.is_configured():
        return responses.error('GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET environment variables are required')
    state = secrets.token_urlsafe(24)
    request.session[OAUTH_STATE_KEY] = state
    return redirect(google.authorization_url(state))


@api_view(['GET'])
@permission_classes([AllowAny])
def google_callback_view(request):
    """Finish the OAuth dance and hand the token to the SPA via query string."""
    expected = request.session.pop(OAUTH_STATE_KEY, None)
    state = request.query_params.get('state')
    code = request.query_params.get('code')
    if request.query_params.get('error') or not code:
        return _frontend_redirect(error='google_auth_failed')
    if not expected or not state or not secrets.compare_digest(expected, state):
        return _frontend_redirect(error='invalid_state')

    try:
        profile = google.exchange_code(code)
    except Exception:
        logger.warning('google code exchange failed', exc_info=True)
        return _frontend_redirect(error='google_auth_failed')

    user, is_new = google.find_or_create_user(profile)
    log_action(user=user, action='google_login', object_type='user', object_id=user.id,
               detail={'isNew': is_new, 'ip': _client_ip(request)})
    token = accounts.access_token_for(user)
    return _frontend_redirect(token=token, user=json.dumps(accounts.user_payload(user)))


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from a refresh token."""
    resp = TokenRefreshView.as_view()(request._request)
    if resp.status_code != 200:
        return responses.unauthorized('Invalid token')
    data = dict(resp.data)
    return responses.success({'token': data.get('access'), 'refresh': data.get('refresh')})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist the given refresh token, or every outstanding one for the user."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        token = RefreshToken(refresh)
        if token.get('id') != request.user.id:
            return responses.forbidden('Token does not belong to the current user')
        token.blacklist()
        count = 1
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    return responses.success({'blacklisted': count}, 'Logged out')
