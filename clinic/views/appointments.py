"""
Appointment endpoints.

Doctors list and drive their own appointments; patients read theirs;
front desk roles may update status or reschedule.  Every status change
goes through :func:`clinic.services.appointments.change_status` so the
transition table is enforced in one place.
"""
from __future__ import annotations

import logging

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Appointment, Doctor, Patient
from ..permissions import authorize
from ..services import accounts, scope
from ..services.appointments import (
    TransitionError,
    appointment_dict,
    booked_slots,
    change_status,
    create_appointment,
    mode_filter,
    normalize_status,
)
from ..services.audit import log_action
from ..services.dates import day_range, parse_date, parse_int, parse_time, today

logger = logging.getLogger(__name__)

IsStatusEditor = authorize('doctor', 'admin', 'receptionist')


def _base_qs():
    return Appointment.objects.select_related('patient', 'doctor', 'clinic')


def _apply_status(request, appointment, new_status, **fields):
    try:
        updated = change_status(appointment, new_status, operator=request.user, **fields)
    except TransitionError as exc:
        return None, responses.bad_request(str(exc))
    log_action(user=request.user, action='appointment_status', object_type='appointment',
               object_id=updated.pk, detail={'status': updated.status, **{k: str(v) for k, v in fields.items()}})
    return updated, None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def appointments(request):
    if request.method == 'POST':
        return _create(request)

    own_doctor_id = accounts.role_id(request.user, 'doctor_id')
    doctor_id = parse_int(request.query_params.get('doctor_id'), field='doctor_id') or own_doctor_id
    if not doctor_id:
        return responses.bad_request('Doctor ID is required')
    if request.user.role == 'doctor' and own_doctor_id and str(own_doctor_id) != str(doctor_id):
        return responses.forbidden("Access denied to other doctor's appointments")

    qs = _base_qs().filter(doctor_id=doctor_id)
    qs = mode_filter(qs, request.query_params.get('type'))
    rng = day_range(request.query_params.get('dateFilter'),
                    start=request.query_params.get('from'), end=request.query_params.get('to'))
    if rng:
        qs = qs.filter(appointment_date__range=rng)
    qs = qs.order_by('appointment_date', 'appointment_time')
    return responses.success([appointment_dict(a) for a in qs], 'Doctor appointments retrieved')


def _create(request):
    data = request.data
    patient_id = data.get('patient_id')
    doctor_id = parse_int(data.get('doctor_id'), field='doctor_id')
    if not patient_id or not doctor_id or not data.get('appointment_date'):
        return responses.bad_request('Missing required parameters for appointment')
    scope.ensure_own_patient(request.user, patient_id)

    patient = Patient.objects.get(patient_id=patient_id)
    doctor = Doctor.objects.get(id=doctor_id)
    appointment = create_appointment(
        patient=patient,
        doctor=doctor,
        appointment_date=data.get('appointment_date'),
        appointment_time=data.get('appointment_time'),
        appointment_type=data.get('type') or data.get('appointment_type') or '',
        mode=data.get('mode') or 'in-person',
        status=data.get('status'),
        consult_duration=data.get('consult_duration'),
        earnings=data.get('earnings'),
        reason_for_visit=data.get('reason_for_visit') or '',
    )
    logger.info('appointment %s booked for patient %s with doctor %s', appointment.pk, patient.pk, doctor.pk)
    return responses.created(appointment_dict(appointment), 'Appointment created successfully')


@api_view(['POST'])
@permission_classes([IsAuthenticated, authorize('doctor')])
def start_appointment(request):
    appointment_id = request.data.get('appointment_id')
    if not appointment_id:
        return responses.bad_request('Appointment ID required')
    appointment = Appointment.objects.filter(appointment_id=appointment_id).first()
    if appointment is None:
        return responses.not_found('Appointment not found')
    if appointment.doctor_id != accounts.role_id(request.user, 'doctor_id'):
        return responses.forbidden('You are not authorized to start this appointment')

    updated, err = _apply_status(request, appointment, Appointment.STATUS_IN_PROGRESS)
    if err:
        return err
    return responses.success(appointment_dict(updated), 'Appointment started')


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsStatusEditor])
def update_status_from_body(request):
    appointment_id = request.data.get('appointment_id')
    status = request.data.get('status')
    if not appointment_id or not status:
        return responses.bad_request('Appointment ID and status required')
    appointment = Appointment.objects.get(appointment_id=appointment_id)
    updated, err = _apply_status(request, appointment, status)
    if err:
        return err
    return responses.updated(appointment_dict(updated), 'Appointment status updated')


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsStatusEditor])
def reschedule_appointment(request):
    data = request.data
    appointment_id = data.get('appointment_id')
    if not appointment_id or not data.get('appointment_date') or not data.get('appointment_time'):
        return responses.bad_request('Missing reschedule parameters')
    appointment = Appointment.objects.get(appointment_id=appointment_id)
    updated, err = _apply_status(
        request, appointment, Appointment.STATUS_SCHEDULED,
        appointment_date=parse_date(data['appointment_date'], field='appointment_date'),
        appointment_time=parse_time(data['appointment_time']),
    )
    if err:
        return err
    return responses.updated(appointment_dict(updated), 'Appointment rescheduled')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_appointments(request):
    patient = scope.current_patient(request.user)
    qs = _base_qs().filter(patient=patient).order_by('-appointment_date', '-appointment_time')
    return responses.success([appointment_dict(a) for a in qs], 'Patient appointments retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_upcoming_appointments(request):
    patient = scope.current_patient(request.user)
    qs = (
        _base_qs().filter(patient=patient, appointment_date__gte=today())
        .order_by('appointment_date', 'appointment_time')
    )
    return responses.success([appointment_dict(a) for a in qs], 'Upcoming patient appointments retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_appointments(request, patient_id: str):
    scope.ensure_own_patient(request.user, patient_id)
    qs = _base_qs().filter(patient_id=patient_id).order_by('-appointment_date', '-appointment_time')
    return responses.success([appointment_dict(a) for a in qs], 'Patient appointments retrieved successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def upcoming_appointments(request, patient_id: str):
    scope.ensure_own_patient(request.user, patient_id)
    qs = (
        _base_qs().filter(patient_id=patient_id, appointment_date__gte=today())
        .order_by('appointment_date', 'appointment_time')
    )
    items = [appointment_dict(a) for a in qs]
    return responses.success({'count': len(items), 'appointments': items},
                             'Upcoming appointments retrieved successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booked_slots_view(request, doctor_id: int, date: str):
    day = parse_date(date, field='date')
    return responses.success({'bookedSlots': booked_slots(doctor_id, day)},
                             'Booked time slots retrieved successfully')


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, appointment_id: str):
    if request.method == 'DELETE':
        if request.user.role not in ('doctor', 'admin'):
            return responses.role_forbidden(request.user)
        qs = Appointment.objects.filter(appointment_id=appointment_id)
        if request.user.role == 'doctor':
            qs = qs.filter(doctor_id=accounts.role_id(request.user, 'doctor_id'))
        deleted, _ = qs.delete()
        if not deleted:
            return responses.not_found('Appointment not found')
        log_action(user=request.user, action='appointment_delete', object_type='appointment',
                   object_id=appointment_id)
        return responses.deleted('Appointment deleted')

    appointment = _base_qs().filter(appointment_id=appointment_id).first()
    if appointment is None:
        return responses.not_found('Appointment not found')
    scope.ensure_own_patient(request.user, appointment.patient_id)
    return responses.success(appointment_dict(appointment), 'Appointment retrieved')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsStatusEditor])
def appointment_status(request, appointment_id: str):
    status = request.data.get('status')
    if normalize_status(status) is None:
        return responses.bad_request('Validation failed', errors={
            'status': ['Status must be one of scheduled, completed, cancelled, no_show, in_progress'],
        })
    appointment = Appointment.objects.filter(appointment_id=appointment_id).first()
    if appointment is None:
        return responses.not_found('Appointment not found')
    updated, err = _apply_status(request, appointment, status)
    if err:
        return err
    return responses.updated(appointment_dict(updated), 'Appointment status updated')
