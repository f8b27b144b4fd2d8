"""
Doctor directory and the doctor portal.

The directory (``GET /api/doctors``) is open to any signed-in role and
served from cache.  Everything else acts on the requesting doctor's own
patients, appointments, prescriptions and profile.
"""
from __future__ import annotations

from datetime import datetime, time

from django.db import transaction
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Appointment, Patient, Prescription
from ..permissions import IsDoctorRole
from ..serializers.clinic import DoctorProfileSerializer
from ..serializers.patient import PatientSerializer
from ..services import accounts, doctors as doctor_service, scope
from ..services.appointments import (
    TransitionError,
    appointment_dict,
    change_status,
    create_appointment,
    normalize_status,
)
from ..services.dates import day_range, parse_date, parse_int, today
from ..services.prescriptions import create_prescription, prescription_dict

DOCTOR_STATUS_CHOICES = {
    Appointment.STATUS_IN_PROGRESS,
    Appointment.STATUS_CANCELLED,
    Appointment.STATUS_COMPLETED,
    Appointment.STATUS_SCHEDULED,
}


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def doctor_list(request):
    return responses.success(doctor_service.cached_verified_doctors(), 'All verified doctors retrieved')


def _created_between(qs, start, end):
    tz = timezone.get_current_timezone()
    return qs.filter(created_at__gte=datetime.combine(start, time.min, tzinfo=tz),
                     created_at__lte=datetime.combine(end, time.max, tzinfo=tz))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_patients(request):
    """Own patients, optionally ``filter=Today|Custom|Upcoming``."""
    doctor = scope.current_doctor(request.user)
    qs = Patient.objects.filter(doctor=doctor)
    flt = (request.query_params.get('filter') or '').lower()
    if flt == 'today':
        qs = _created_between(qs, today(), today())
    elif flt == 'custom':
        start = parse_date(request.query_params.get('startDate'), field='startDate')
        end = parse_date(request.query_params.get('endDate'), field='endDate')
        if start and end:
            qs = _created_between(qs, start, end)
    elif flt == 'upcoming':
        qs = Patient.objects.filter(
            appointments__doctor=doctor,
            appointments__appointment_date__gte=today(),
            appointments__status=Appointment.STATUS_SCHEDULED,
        ).distinct()
    qs = qs.order_by('full_name')
    return responses.success(PatientSerializer(qs, many=True).data, "Doctor's patient roster retrieved")


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def delete_doctor_patient(request, patient_id: str):
    doctor = scope.current_doctor(request.user)
    patient = Patient.objects.filter(patient_id=patient_id, doctor=doctor).first()
    if patient is None:
        return responses.not_found('Patient not found or not authorized to delete')
    patient.delete()
    return responses.deleted('Patient record deleted')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_appointments(request):
    doctor = scope.current_doctor(request.user)
    if request.method == 'POST':
        return _create_doctor_appointment(request, doctor)

    qs = Appointment.objects.select_related('patient', 'doctor', 'clinic').filter(doctor=doctor)
    status = normalize_status(request.query_params.get('status'))
    if status:
        qs = qs.filter(status=status)
    if (request.query_params.get('mode') or '').lower() == 'online':
        qs = qs.filter(mode__in=['online', 'video'])
    qs = qs.order_by('appointment_date', 'appointment_time')
    return responses.success([appointment_dict(a) for a in qs], "Doctor's appointments retrieved")


def _create_doctor_appointment(request, doctor):
    data = request.data
    if not data.get('appointment_date'):
        return responses.bad_request('appointment_date is required')
    with transaction.atomic():
        patient_id = data.get('patient_id')
        if patient_id:
            patient = Patient.objects.get(patient_id=patient_id)
        else:
            if not (data.get('full_name') or '').strip():
                return responses.bad_request('full_name is required for a new patient')
            patient = accounts.create_patient_record(
                full_name=data['full_name'].strip(),
                email=data.get('email') or '',
                phone=data.get('phone') or '',
                age=parse_int(data.get('age'), field='age'),
                gender=data.get('gender') or '',
                doctor=doctor,
            )
        appointment = create_appointment(
            patient=patient,
            doctor=doctor,
            appointment_date=data['appointment_date'],
            appointment_time=data.get('appointment_time'),
            appointment_type=data.get('type') or 'Consultation',
            mode=data.get('mode') or 'in-person',
            reason_for_visit=data.get('reason') or data.get('reason_for_visit') or '',
        )
    return responses.created(appointment_dict(appointment), 'Appointment scheduled successfully')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_appointment_status(request, appointment_id: str):
    doctor = scope.current_doctor(request.user)
    status = normalize_status(request.data.get('status'))
    if status not in DOCTOR_STATUS_CHOICES:
        return responses.bad_request('Invalid status transition')
    appointment = Appointment.objects.filter(appointment_id=appointment_id, doctor=doctor).first()
    if appointment is None:
        return responses.not_found('Appointment not found')
    try:
        updated = change_status(appointment, status, operator=request.user)
    except TransitionError as exc:
        return responses.bad_request(str(exc))
    return responses.success(appointment_dict(updated), f'Appointment status updated to {status}')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_prescriptions(request):
    doctor = scope.current_doctor(request.user)
    if request.method == 'POST':
        return _create_doctor_prescription(request, doctor)

    qs = Prescription.objects.filter(doctor=doctor).select_related('patient', 'doctor')
    flt = (request.query_params.get('filter') or '').lower()
    date = request.query_params.get('date')
    rng = day_range(flt, start=date, end=date) if flt in ('today', 'yesterday', 'custom') else None
    if rng:
        qs = qs.filter(created_at__date__range=rng)
    qs = qs.prefetch_related('medicines', 'lab_tests').order_by('-created_at')
    return responses.success([prescription_dict(rx) for rx in qs], "Doctor's prescription records retrieved")


def _create_doctor_prescription(request, doctor):
    data = request.data
    appointment = (
        Appointment.objects.select_related('patient', 'clinic')
        .filter(appointment_id=data.get('appointment_id'), doctor=doctor).first()
    )
    if appointment is None:
        return responses.forbidden('Unauthorized to create prescription for this appointment')
    medicines = data.get('medicines') if isinstance(data.get('medicines'), list) else []
    lab_tests = data.get('lab_tests') if isinstance(data.get('lab_tests'), list) else []
    try:
        with transaction.atomic():
            rx = create_prescription(
                patient=appointment.patient,
                doctor=doctor,
                appointment=appointment,
                diagnosis=data.get('diagnosis') or '',
                notes=data.get('notes') or '',
                follow_up_date=data.get('follow_up_date'),
                medicines=medicines,
                lab_tests=lab_tests,
            )
            change_status(appointment, Appointment.STATUS_COMPLETED, operator=request.user,
                          reason='prescription issued')
    except TransitionError as exc:
        return responses.bad_request(str(exc))
    return responses.created(prescription_dict(rx), 'Prescription generated and appointment completed')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_stats(request):
    doctor = scope.current_doctor(request.user)
    own = Appointment.objects.filter(doctor=doctor)
    return responses.success({
        'totalPatients': Patient.objects.filter(doctor=doctor).count(),
        'pendingAppointments': own.filter(status=Appointment.STATUS_SCHEDULED).count(),
        'completedAppointments': own.filter(status=Appointment.STATUS_COMPLETED).count(),
    }, 'Doctor dashboard stats retrieved')


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def doctor_profile(request):
    doctor = scope.current_doctor(request.user)
    if request.method == 'GET':
        return responses.success(doctor_service.profile_dict(doctor), 'Doctor profile retrieved successfully')

    data = {key: request.data.get(key) for key in request.data}
    if 'consultationModes' in data and 'consultation_modes' not in data:
        data['consultation_modes'] = data['consultationModes']
    for immutable in ('id', 'user', 'user_id', 'email', 'consultationModes'):
        data.pop(immutable, None)
    s = DoctorProfileSerializer(doctor, data=data, partial=True)
    s.is_valid(raise_exception=True)
    doctor = doctor_service.update_profile(doctor, s.validated_data)
    return responses.success(doctor_service.profile_dict(doctor), 'Profile updated successfully')
