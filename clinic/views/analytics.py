"""
Analytics and role dashboards.

``/api/analytics/*`` serves admins and clinic owners (clinic owners see
only their clinic); chart payloads are cached for ``CACHE_TTL`` seconds.
``/api/dashboard/*`` backs the doctor and front desk home screens.

Only admins get system-wide numbers.  Every other role is narrowed to its
doctor profile or clinic, and a user whose profile cannot be resolved is
refused rather than shown unscoped data.
"""
from __future__ import annotations

from django.conf import settings
from django.core.cache import cache
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..permissions import IsAdminOrClinic, authorize
from ..services import analytics, scope

IsDashboardRole = authorize('doctor', 'admin', 'receptionist', 'clinic')


def _clinic_scope(user):
    if user.role == 'admin':
        return None
    return scope.current_clinic(user).id


def _dashboard_scope(user) -> tuple[int | None, int | None]:
    """(doctor_id, clinic_id) the dashboard is limited to."""
    if user.role == 'doctor':
        return scope.current_doctor(user).id, None
    return None, _clinic_scope(user)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrClinic])
def analytics_stats(request):
    return responses.success(analytics.summary_stats(_clinic_scope(request.user)), 'Analytics stats retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrClinic])
def analytics_charts(request):
    clinic_id = _clinic_scope(request.user)
    ck = f'analytics:charts:{clinic_id or "all"}'
    payload = cache.get(ck)
    if payload is None:
        payload = analytics.charts(clinic_id)
        cache.set(ck, payload, settings.CACHE_TTL)
    return responses.success(payload, 'Chart data retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDashboardRole])
def dashboard_stats(request):
    doctor_id, clinic_id = _dashboard_scope(request.user)
    data = analytics.dashboard_stats(request.user.role, doctor_id=doctor_id, clinic_id=clinic_id)
    return responses.success(data, 'Dashboard stats retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDashboardRole])
def dashboard_appointments(request):
    doctor_id, clinic_id = _dashboard_scope(request.user)
    data = analytics.hourly_distribution(doctor_id=doctor_id, clinic_id=clinic_id)
    return responses.success(data, 'Appointment distribution retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDashboardRole])
def dashboard_revenue(request):
    doctor_id, clinic_id = _dashboard_scope(request.user)
    data = analytics.weekday_revenue(request.user.role, doctor_id=doctor_id, clinic_id=clinic_id)
    return responses.success(data, 'Revenue data retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDashboardRole])
def dashboard_recent_appointments(request):
    doctor_id, clinic_id = _dashboard_scope(request.user)
    data = analytics.recent_appointments(doctor_id=doctor_id, clinic_id=clinic_id)
    return responses.success(data, 'Recent appointments retrieved')
