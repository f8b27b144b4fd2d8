from django.core.cache import cache
from django.conf import settings

from clinic.models import Doctor

DOCTOR_LIST_CACHE_KEY = 'doctors:verified'
DEFAULT_SPECIALIZATION = 'General Physician'


def primary_specialization(doctor: Doctor) -> str:
    specs = doctor.specializations or []
    return specs[0] if specs else DEFAULT_SPECIALIZATION


def list_verified_doctors() -> list[dict]:
    qs = Doctor.objects.filter(verification_status='verified').order_by('full_name')
    return [{
        'id': d.id,
        'full_name': d.full_name,
        'specialization': primary_specialization(d),
        'qualifications': d.qualifications or 'N/A',
        'experience_years': d.experience_years,
        'consultation_modes': d.consultation_modes or [],
        'languages': d.languages or [],
        'profile_photo': d.profile_photo,
        'clinics': [{'id': c.id, 'clinic_name': c.clinic_name} for c in d.clinics.all()],
    } for d in qs.prefetch_related('clinics')]


def cached_verified_doctors() -> list[dict]:
    data = cache.get(DOCTOR_LIST_CACHE_KEY)
    if data is None:
        data = list_verified_doctors()
        cache.set(DOCTOR_LIST_CACHE_KEY, data, settings.CACHE_TTL)
    return data


def invalidate_doctor_cache() -> None:
    cache.delete(DOCTOR_LIST_CACHE_KEY)


PROFILE_FIELDS = [
    'full_name', 'date_of_birth', 'gender', 'mobile', 'medical_council_reg_no', 'medical_council_name',
    'registration_year', 'qualifications', 'university', 'graduation_year', 'experience_years', 'bio',
    'profile_photo',
]
LIST_FIELDS = ['specializations', 'languages', 'consultation_modes']


def profile_dict(doctor: Doctor) -> dict:
    data = {f: getattr(doctor, f) for f in PROFILE_FIELDS + LIST_FIELDS}
    if doctor.date_of_birth:
        data['date_of_birth'] = doctor.date_of_birth.isoformat()
    data.update({
        'id': doctor.id,
        'email': doctor.email,
        'verification_status': doctor.verification_status,
        'clinics': [{'id': c.id, 'clinic_name': c.clinic_name} for c in doctor.clinics.all()],
    })
    return data


def update_profile(doctor: Doctor, data: dict) -> Doctor:
    """Update editable fields; id, user link and email never change here."""
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(doctor, field, data[field])
    for field in LIST_FIELDS:
        if field in data and isinstance(data[field], list):
            setattr(doctor, field, [str(v) for v in data[field] if str(v).strip()])
    doctor.save()
    doctor.refresh_from_db()
    invalidate_doctor_cache()
    return doctor
