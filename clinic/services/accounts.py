"""
Account helpers: role id resolution, registration and token issuing.
"""
from __future__ import annotations

import secrets
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework_simplejwt.tokens import RefreshToken

from clinic.models import Clinic, ClinicStaff, Doctor, Patient, VerificationDetail
from clinic.services import ids

User = get_user_model()

# login roles a clinic may hand out to its staff; never platform admin
STAFF_ROLES = {'receptionist', 'nurse', 'lab', 'pharmacy'}


def find_patient_for_user(user) -> Optional[Patient]:
    """Linked patient record, falling back to a record with the same email."""
    patient = Patient.objects.filter(user=user).first()
    if patient is None and user.email:
        patient = Patient.objects.filter(email__iexact=user.email).first()
    return patient


def find_doctor_for_user(user) -> Optional[Doctor]:
    doctor = Doctor.objects.filter(user=user).first()
    if doctor is None and user.email:
        doctor = Doctor.objects.filter(email__iexact=user.email).first()
    return doctor


def attach_role_ids(user) -> None:
    """Set ``patient_id`` / ``doctor_id`` / ``clinic_id`` on ``user`` for its role."""
    user.patient_id = None
    user.doctor_id = None
    user.clinic_id = None
    role = getattr(user, 'role', None)
    if role == 'patient':
        patient = find_patient_for_user(user)
        user.patient_id = patient.patient_id if patient else None
    elif role == 'doctor':
        doctor = find_doctor_for_user(user)
        user.doctor_id = doctor.id if doctor else None
    elif role == 'clinic':
        user.clinic_id = Clinic.objects.filter(user=user).values_list('id', flat=True).first()
    elif role in STAFF_ROLES:
        user.clinic_id = (
            ClinicStaff.objects.filter(user=user, is_active=True).values_list('clinic_id', flat=True).first()
        )
    user.role_ids_attached = True


def role_id(user, name: str):
    """Return one of the injected ids, resolving them first if needed."""
    if not getattr(user, 'role_ids_attached', False) or getattr(user, name, None) is None:
        attach_role_ids(user)
    return getattr(user, name, None)


def issue_tokens(user) -> RefreshToken:
    refresh = RefreshToken.for_user(user)
    # copied into every access token derived from this refresh token
    refresh['role'] = user.role
    return refresh


def access_token_for(user) -> str:
    return str(issue_tokens(user).access_token)


def user_payload(user) -> dict:
    return {
        'user_id': user.id,
        'full_name': user.full_name,
        'email': user.email,
        'role': (user.role or '').lower(),
    }


def email_taken(email: str) -> bool:
    return User.objects.filter(email__iexact=(email or '').strip()).exists()


def create_user(*, email: str, password: Optional[str], full_name: str, role: str, mobile: str = '') -> User:
    email = email.strip().lower()
    user = User(username=email, email=email, full_name=full_name, role=role, mobile_number=mobile or '')
    user.set_password(password or secrets.token_urlsafe(16))
    user.save()
    return user


def create_patient_record(*, user=None, full_name: str, email: str = '', phone: str = '', **extra) -> Patient:
    return Patient.objects.create(
        patient_id=ids.patient_id(),
        user=user,
        full_name=full_name,
        email=email or '',
        phone=phone or '',
        **extra,
    )


def register_user(*, full_name: str, email: str, password: str, role: str = 'patient') -> User:
    with transaction.atomic():
        user = create_user(email=email, password=password, full_name=full_name, role=role)
        if role == 'patient':
            create_patient_record(user=user, full_name=full_name, email=user.email)
    return user


def _bank(data: dict) -> dict:
    bank = data.get('bankDetails') or {}
    return {
        'bank_account_name': bank.get('accountName') or '',
        'bank_account_number': bank.get('accountNumber') or '',
        'ifsc_code': bank.get('ifsc') or '',
        'pan_number': bank.get('pan') or '',
        'gstin': bank.get('gstin') or '',
    }


def register_doctor(data: dict) -> tuple[User, Doctor]:
    """Create the doctor login, profile and verification mirror in one transaction."""
    bank = _bank(data)
    with transaction.atomic():
        user = create_user(email=data['email'], password=data['password'], full_name=data['name'],
                           role='doctor', mobile=data['mobile'])
        doctor = Doctor.objects.create(
            user=user,
            full_name=data['name'],
            date_of_birth=data.get('dob'),
            gender=data.get('gender') or '',
            mobile=data['mobile'],
            email=user.email,
            medical_council_reg_no=data['mciReg'],
            medical_council_name=data['councilName'],
            registration_year=data['regYear'],
            qualifications=data['degrees'],
            university=data['university'],
            graduation_year=data['gradYear'],
            experience_years=data['experience'],
            bio=data.get('bio') or '',
            specializations=data.get('specializations') or [],
            languages=data.get('languages') or [],
            consultation_modes=data.get('consultationModes') or [],
            **bank,
        )
        VerificationDetail.objects.create(verification_type='DOCTOR', doctor=doctor, **bank)
    return user, doctor


def register_clinic(data: dict) -> tuple[User, Clinic]:
    bank = _bank(data)
    with transaction.atomic():
        user = create_user(email=data['email'], password=data['password'], full_name=data['name'],
                           role='clinic', mobile=data['mobile'])
        clinic = Clinic.objects.create(
            user=user,
            clinic_name=data['name'],
            establishment_year=data.get('establishedYear'),
            tagline=data.get('tagline') or '',
            description=data.get('description') or '',
            address=data['address'],
            pin_code=data['pinCode'],
            city=data['city'],
            state=data['state'],
            mobile=data['mobile'],
            email=user.email,
            website=data.get('website') or '',
            medical_council_reg_no=data['medicalCouncilRegNo'],
            services=data.get('services') or [],
            facilities=data.get('facilities') or [],
            payment_modes=data.get('paymentModes') or [],
            booking_modes=data.get('bookingModes') or [],
            terms_accepted=True,
            declaration_accepted=True,
            verification_status='pending',
            **bank,
        )
        VerificationDetail.objects.create(verification_type='CLINIC', clinic=clinic, **bank)
    return user, clinic
