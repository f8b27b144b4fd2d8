from datetime import time
from decimal import Decimal

import pytest
from django.db import IntegrityError
from rest_framework_simplejwt.exceptions import TokenError

from clinic.exceptions import InvalidInput, api_exception_handler
from clinic.models import Appointment, AppointmentTransition, Doctor
from clinic.sanitize import clean_text
from clinic.services import appointments as appointment_svc
from clinic.services.billing import invoice_status
from clinic.services.dates import day_range, format_slot, parse_time, today
from clinic.services.doctors import list_verified_doctors


@pytest.mark.parametrize('value, expected', [
    (time(0, 5), '12:05 AM'),
    (time(9, 0), '09:00 AM'),
    (time(12, 0), '12:00 PM'),
    (time(23, 45), '11:45 PM'),
    ('14:30:00', '02:30 PM'),
    ('2:15 pm', '02:15 PM'),
    (None, None),
])
def test_format_slot(value, expected):
    assert format_slot(value) == expected


def test_parse_time_accepts_twelve_hour_clock():
    assert parse_time('12:00 AM') == time(0, 0)
    assert parse_time('07:05 PM') == time(19, 5)
    assert parse_time('08:30') == time(8, 30)


@pytest.mark.parametrize('value', ['25:00', '13:00 PM', 'noon'])
def test_parse_time_rejects_garbage(value):
    with pytest.raises(InvalidInput):
        parse_time(value)


def test_custom_day_range_defaults_end_to_start():
    start, end = day_range('custom', start='2024-03-01')
    assert start == end
    assert day_range('whenever') is None


def test_transition_table():
    can = appointment_svc._can_transition
    assert can('scheduled', 'in_progress')
    assert can('in_progress', 'scheduled')
    assert can('no_show', 'scheduled')
    assert not can('completed', 'scheduled')
    assert not can('cancelled', 'completed')


def test_normalize_status():
    assert appointment_svc.normalize_status('In-Progress') == 'in_progress'
    assert appointment_svc.normalize_status('no show') == 'no_show'
    assert appointment_svc.normalize_status('done') is None


def test_invoice_status():
    assert invoice_status(Decimal('500'), Decimal('0'), Decimal('0')) == 'pending'
    assert invoice_status(Decimal('500'), Decimal('0'), Decimal('100')) == 'partial'
    assert invoice_status(Decimal('500'), Decimal('50'), Decimal('450')) == 'paid'
    # fully discounted invoices are settled without a payment
    assert invoice_status(Decimal('500'), Decimal('500'), Decimal('0')) == 'paid'
    assert invoice_status(Decimal('0'), Decimal('0'), Decimal('0')) == 'paid'


@pytest.mark.django_db
def test_change_status_records_transition_and_broadcasts(monkeypatch, patient, doctor, clinic_owner,
                                                         django_capture_on_commit_callbacks):
    _, clinic = clinic_owner
    _, doc = doctor
    _, record = patient
    apt = Appointment.objects.create(appointment_id='APT-X-1', patient=record, doctor=doc, clinic=clinic,
                                     appointment_date=today(), appointment_time=time(10, 0))
    sent = []
    monkeypatch.setattr(appointment_svc, 'broadcast_queue_update', lambda a: sent.append((a.pk, a.status)))

    with django_capture_on_commit_callbacks(execute=True):
        appointment_svc.change_status(apt, 'in-progress')
    assert sent == [('APT-X-1', 'in_progress')]
    assert AppointmentTransition.objects.filter(appointment=apt, to_status='in_progress').count() == 1

    # same status again is a no-op
    with django_capture_on_commit_callbacks(execute=True):
        appointment_svc.change_status(apt, 'in_progress')
    assert len(sent) == 1
    assert AppointmentTransition.objects.filter(appointment=apt).count() == 1


@pytest.mark.django_db
def test_invalid_transition_leaves_row_untouched(patient, doctor):
    _, doc = doctor
    _, record = patient
    apt = Appointment.objects.create(appointment_id='APT-X-2', patient=record, doctor=doc,
                                     appointment_date=today(), status='completed')
    with pytest.raises(appointment_svc.TransitionError):
        appointment_svc.change_status(apt, 'cancelled')
    apt.refresh_from_db()
    assert apt.status == 'completed'
    assert not AppointmentTransition.objects.filter(appointment=apt).exists()


class _PgUniqueViolation(Exception):
    pgcode = '23505'


def _integrity(message, cause=None):
    exc = IntegrityError(message)
    exc.__cause__ = cause
    return exc


def test_handler_maps_postgres_unique_violation():
    exc = _integrity('duplicate key value violates unique constraint\nDETAIL: Key (email)=(a@b.c) already exists.',
                     _PgUniqueViolation())
    resp = api_exception_handler(exc, {})
    assert resp.status_code == 400
    assert resp.data['message'] == 'Duplicate value: email already exists'


def test_handler_maps_sqlite_unique_violation():
    resp = api_exception_handler(_integrity('UNIQUE constraint failed: clinic_user.email'), {})
    assert resp.status_code == 400
    assert resp.data['message'] == 'Duplicate value: email already exists'


def test_handler_maps_foreign_key_violation():
    resp = api_exception_handler(_integrity('FOREIGN KEY constraint failed'), {})
    assert resp.status_code == 400
    assert 'foreign key' in resp.data['message']


def test_handler_maps_missing_row_to_404():
    resp = api_exception_handler(Appointment.DoesNotExist(), {})
    assert resp.status_code == 404
    assert resp.data == {'success': False, 'data': None, 'message': 'Record not found'}


def test_handler_maps_bad_input_to_400():
    resp = api_exception_handler(InvalidInput('invalid date'), {})
    assert resp.status_code == 400
    assert resp.data['message'] == 'Invalid input syntax'


def test_handler_maps_orm_lookup_conversion_to_400():
    resp = api_exception_handler(ValueError("Field 'id' expected a number but got 'abc'."), {})
    assert resp.status_code == 400
    assert resp.data['message'] == 'Invalid input syntax'


def test_handler_reports_expired_token():
    resp = api_exception_handler(TokenError('Token is expired'), {})
    assert resp.status_code == 401
    assert resp.data['message'] == 'Token expired'
    assert api_exception_handler(TokenError('Token is invalid'), {}).data['message'] == 'Invalid token'


@pytest.mark.parametrize('raw, expected', [
    ('<b>Heart</b> specialist', 'Heart specialist'),
    ('<a href="x">Hi</a>', 'Hi'),
    ('  plain  ', 'plain'),
    (None, ''),
])
def test_clean_text_strips_markup(raw, expected):
    assert clean_text(raw) == expected


@pytest.mark.django_db
def test_verified_doctor_list_skips_pending(doctor):
    Doctor.objects.create(full_name='Pending Person', email='pending@clinic.test')
    names = [d['full_name'] for d in list_verified_doctors()]
    assert names == ['Asha Rao']
