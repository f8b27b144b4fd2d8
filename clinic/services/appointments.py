"""
Appointment scheduling: creation, status transitions and booked slots.

Status changes go through :func:`change_status`, which validates the
transition, locks the row, records an :class:`AppointmentTransition`
and, once the transaction commits, pushes a queue update to the
clinic's WebSocket group.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from clinic.models import Appointment, AppointmentTransition, Clinic, Doctor, Patient
from clinic.services import ids
from clinic.services.dates import format_slot, parse_date, parse_decimal, parse_int, parse_time

logger = logging.getLogger(__name__)

STATUSES = [choice for choice, _ in Appointment.STATUS_CHOICES]

TRANSITIONS = {
    Appointment.STATUS_SCHEDULED: [
        Appointment.STATUS_IN_PROGRESS,
        Appointment.STATUS_COMPLETED,
        Appointment.STATUS_CANCELLED,
        Appointment.STATUS_NO_SHOW,
    ],
    Appointment.STATUS_IN_PROGRESS: [
        Appointment.STATUS_COMPLETED,
        Appointment.STATUS_CANCELLED,
        Appointment.STATUS_SCHEDULED,
    ],
    Appointment.STATUS_COMPLETED: [],
    Appointment.STATUS_CANCELLED: [Appointment.STATUS_SCHEDULED],
    Appointment.STATUS_NO_SHOW: [Appointment.STATUS_SCHEDULED],
}


class TransitionError(Exception):
    pass


def normalize_status(value) -> Optional[str]:
    """Map ``in-progress`` / ``No-Show`` style input onto the stored values."""
    if value is None:
        return None
    status = str(value).strip().lower().replace('-', '_').replace(' ', '_')
    return status if status in STATUSES else None


def _can_transition(current: str, new: str) -> bool:
    return new in TRANSITIONS.get(current, [])


def queue_group(clinic_id) -> str:
    return f"clinic.{clinic_id}.queue"


def broadcast_queue_update(appointment: Appointment) -> None:
    if not appointment.clinic_id:
        return
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    event = {
        'type': 'queue.update',
        'appointmentId': appointment.appointment_id,
        'status': appointment.status,
        'doctorId': appointment.doctor_id,
        'date': appointment.appointment_date.isoformat(),
    }
    try:
        async_to_sync(channel_layer.group_send)(queue_group(appointment.clinic_id), event)
    except Exception:
        logger.warning('queue broadcast failed for %s', appointment.appointment_id, exc_info=True)


def change_status(appointment: Appointment, new_status: str, *, operator=None, reason: str = '',
                  **fields) -> Appointment:
    """Move ``appointment`` to ``new_status`` and record the transition.

    Setting the current status again is a no-op.  ``fields`` are extra
    attributes saved in the same transaction (used by reschedule).
    """
    status = normalize_status(new_status)
    if status is None:
        raise TransitionError(f'Invalid status: {new_status}')
    with transaction.atomic():
        locked = Appointment.objects.select_for_update().get(pk=appointment.pk)
        old_status = locked.status
        if old_status != status and not _can_transition(old_status, status):
            raise TransitionError(f'Cannot change status from {old_status} to {status}')
        for name, value in fields.items():
            setattr(locked, name, value)
        if old_status == status and not fields:
            return locked
        locked.status = status
        locked.save()
        if old_status != status:
            AppointmentTransition.objects.create(
                appointment=locked,
                from_status=old_status,
                to_status=status,
                operator=operator if getattr(operator, 'pk', None) else None,
                reason=reason,
            )
            transaction.on_commit(lambda: broadcast_queue_update(locked))
    logger.info('appointment %s: %s -> %s', locked.pk, old_status, status)
    return locked


def create_appointment(*, patient: Patient, doctor: Doctor, appointment_date, clinic: Optional[Clinic] = None,
                       appointment_time=None, appointment_type: str = '', mode: str = 'in-person',
                       status=None, consult_duration=None, earnings=None, reason_for_visit: str = '') -> Appointment:
    if clinic is None:
        clinic = doctor.clinics.order_by('id').first()
    return Appointment.objects.create(
        appointment_id=ids.appointment_id(),
        patient=patient,
        doctor=doctor,
        clinic=clinic,
        appointment_date=parse_date(appointment_date, field='appointment_date'),
        appointment_time=parse_time(appointment_time),
        appointment_type=appointment_type or '',
        mode=mode or 'in-person',
        status=normalize_status(status) or Appointment.STATUS_SCHEDULED,
        consult_duration=parse_int(consult_duration, default=30, field='consult_duration'),
        earnings=parse_decimal(earnings, default=500, field='earnings'),
        reason_for_visit=reason_for_visit or '',
    )


def booked_slots(doctor_id: int, day: date) -> list[str]:
    """Display times of a doctor's non-cancelled appointments on ``day``."""
    times = (
        Appointment.objects
        .filter(doctor_id=doctor_id, appointment_date=day, appointment_time__isnull=False)
        .exclude(status=Appointment.STATUS_CANCELLED)
        .order_by('appointment_time')
        .values_list('appointment_time', flat=True)
    )
    return [format_slot(t) for t in times]


def mode_filter(qs, type_name: Optional[str]):
    """``online`` means video/online consultations, ``in-clinic`` means in person."""
    type_name = (type_name or 'all').lower()
    if type_name == 'online':
        return qs.filter(mode__in=['video', 'online'])
    if type_name == 'in-clinic':
        return qs.filter(mode='in-person')
    return qs


def appointment_dict(a: Appointment) -> dict:
    doctor = a.doctor
    return {
        'appointment_id': a.appointment_id,
        'patient_id': a.patient_id,
        'patient_name': a.patient.full_name if a.patient_id else None,
        'doctor_id': a.doctor_id,
        'clinic_id': a.clinic_id,
        'appointment_date': a.appointment_date.isoformat(),
        'appointment_time': a.appointment_time.strftime('%H:%M') if a.appointment_time else None,
        'time_slot': format_slot(a.appointment_time),
        'appointment_type': a.appointment_type,
        'mode': a.mode,
        'status': a.status,
        'consult_duration': a.consult_duration,
        'earnings': float(a.earnings),
        'reason_for_visit': a.reason_for_visit,
        'doctor': {
            'full_name': doctor.full_name if doctor else 'Unknown Doctor',
            'qualifications': (doctor.qualifications if doctor else '') or 'N/A',
        },
        'clinic': {'clinic_name': a.clinic.clinic_name if a.clinic_id else None},
        'created_at': a.created_at.strftime('%Y-%m-%d %H:%M:%S') if a.created_at else None,
    }
