"""
Resolve the profile rows behind the requesting user and paginate lists.

Views call these instead of trusting ids from the request body, so a
patient or doctor only ever sees their own records.
"""
from __future__ import annotations

from math import ceil

from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from clinic.models import Clinic, Doctor, Patient
from clinic.services import accounts


def current_patient(user) -> Patient:
    pid = accounts.role_id(user, 'patient_id')
    patient = Patient.objects.filter(patient_id=pid).first() if pid else None
    if patient is None:
        raise ValidationError({'patient_id': ['Patient ID not found in session']})
    return patient


def current_doctor(user) -> Doctor:
    did = accounts.role_id(user, 'doctor_id')
    doctor = Doctor.objects.filter(id=did).first() if did else None
    if doctor is None:
        raise NotFound('Doctor profile not found')
    return doctor


def current_clinic(user) -> Clinic:
    cid = accounts.role_id(user, 'clinic_id')
    clinic = Clinic.objects.filter(id=cid).first() if cid else None
    if clinic is None:
        raise PermissionDenied('No clinic is linked to this account')
    return clinic


def ensure_own_patient(user, patient_id) -> None:
    """Patients may only address their own patient id; other roles pass."""
    if getattr(user, 'role', None) != 'patient':
        return
    if accounts.role_id(user, 'patient_id') != patient_id:
        raise PermissionDenied('Not authorized to access this patient')


def paginate(qs, page: int = 1, limit: int = 10) -> tuple[list, dict]:
    page = max(int(page or 1), 1)
    limit = max(int(limit or 10), 1)
    total = qs.count()
    start = (page - 1) * limit
    rows = list(qs[start:start + limit])
    return rows, {'total': total, 'page': page, 'pages': ceil(total / limit) if total else 0, 'limit': limit}
