from __future__ import annotations

import os
import uuid
from typing import Iterable, Optional

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from rest_framework.exceptions import ValidationError

from clinic.models import Patient, PatientAllergy, PatientCondition, PatientDocument
from clinic.sanitize import clean_text

PROFILE_FIELDS = [
    'full_name', 'phone', 'age', 'gender', 'date_of_birth', 'blood_group', 'address', 'emergency_contact',
]


def validate_upload(f) -> str:
    """Check size and content type against the configured limits; return the type."""
    size_mb = (f.size or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValidationError({'file': [f'File exceeds {settings.UPLOAD_MAX_MB} MB']})
    ctype = getattr(f, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValidationError({'file': ['Unsupported file type']})
    return ctype


def _names(values: Optional[Iterable]) -> list[str]:
    out = []
    for v in values or []:
        if isinstance(v, dict):
            v = v.get('name') or v.get('allergy_name') or v.get('condition_name')
        v = clean_text(v)
        if v:
            out.append(v)
    return out


def profile_dict(patient: Patient) -> dict:
    return {
        'patient_id': patient.patient_id,
        'full_name': patient.full_name,
        'email': patient.email,
        'phone': patient.phone,
        'age': patient.age,
        'gender': patient.gender,
        'date_of_birth': patient.date_of_birth.isoformat() if patient.date_of_birth else None,
        'blood_group': patient.blood_group,
        'address': patient.address,
        'emergency_contact': patient.emergency_contact,
        'profile_photo': patient.profile_photo,
        'allergies': [a.allergy_name for a in patient.allergies.all()],
        'chronicDiseases': [c.condition_name for c in patient.conditions.filter(is_chronic=True)],
    }


def update_profile(patient: Patient, data: dict, *, allergies=None, chronic=None) -> Patient:
    """Apply profile fields; allergy / chronic lists replace the stored ones when given."""
    with transaction.atomic():
        for field in PROFILE_FIELDS:
            if field in data:
                setattr(patient, field, data[field])
        patient.save()
        if allergies is not None:
            patient.allergies.all().delete()
            PatientAllergy.objects.bulk_create(
                [PatientAllergy(patient=patient, allergy_name=n) for n in _names(allergies)]
            )
        if chronic is not None:
            patient.conditions.filter(is_chronic=True).delete()
            PatientCondition.objects.bulk_create(
                [PatientCondition(patient=patient, condition_name=n, is_chronic=True) for n in _names(chronic)]
            )
    patient.refresh_from_db()
    return patient


def save_profile_photo(patient: Patient, f) -> str:
    validate_upload(f)
    ext = os.path.splitext(f.name or '')[1]
    path = default_storage.save(f"profiles/{uuid.uuid4().hex}{ext}", f)
    patient.profile_photo = default_storage.url(path)
    patient.save(update_fields=['profile_photo', 'updated_at'])
    return patient.profile_photo


def add_document(patient: Patient, f, document_type: str = 'Other') -> PatientDocument:
    ctype = validate_upload(f)
    return PatientDocument.objects.create(
        patient=patient,
        document_type=clean_text(document_type or 'Other') or 'Other',
        file=f,
        file_name=os.path.basename(f.name or ''),
        content_type=ctype,
        size=f.size or 0,
    )
