from __future__ import annotations

from typing import Iterable, Optional

from django.db import transaction
from rest_framework.exceptions import ValidationError

from clinic.models import Prescription, PrescriptionLabTest, PrescriptionMedicine
from clinic.services import ids
from clinic.services.dates import parse_date


def _lab_test_name(item) -> str:
    if isinstance(item, dict):
        return (item.get('test_name') or item.get('name') or '').strip()
    return str(item or '').strip()


def _medicine_line(item) -> dict:
    if isinstance(item, str):
        return {'medicine_name': item}
    if not isinstance(item, dict):
        raise ValidationError({'medicines': ['each medicine must be an object or a name']})
    return item


def create_prescription(*, patient, doctor=None, appointment=None, clinic=None, diagnosis: str = '',
                        notes: str = '', follow_up_date=None, medicines: Optional[Iterable[dict]] = None,
                        lab_tests: Optional[Iterable] = None) -> Prescription:
    """Insert a prescription and all of its line items atomically.

    A bad line item (e.g. a medicine without a name) rolls back the
    whole prescription.
    """
    with transaction.atomic():
        rx = Prescription.objects.create(
            prescription_id=ids.prescription_id(),
            patient=patient,
            doctor=doctor,
            appointment=appointment,
            clinic=clinic or (appointment.clinic if appointment else None),
            diagnosis=diagnosis or '',
            notes=notes or '',
            follow_up_date=parse_date(follow_up_date, field='follow_up_date'),
        )
        meds = []
        for m in map(_medicine_line, medicines or []):
            name = (m.get('medicine_name') or m.get('name') or '').strip()
            if not name:
                raise ValidationError({'medicines': ['medicine_name is required for every medicine']})
            meds.append(PrescriptionMedicine(
                prescription=rx,
                medicine_name=name,
                dosage=m.get('dosage') or '',
                frequency=m.get('frequency') or '',
                duration=m.get('duration') or '',
            ))
        PrescriptionMedicine.objects.bulk_create(meds)
        tests = [PrescriptionLabTest(prescription=rx, test_name=name)
                 for name in map(_lab_test_name, lab_tests or []) if name]
        PrescriptionLabTest.objects.bulk_create(tests)
    return rx


def prescription_dict(rx: Prescription) -> dict:
    return {
        'prescription_id': rx.prescription_id,
        'patient_id': rx.patient_id,
        'patient_name': rx.patient.full_name if rx.patient_id else None,
        'doctor_id': rx.doctor_id,
        'doctor_name': rx.doctor.full_name if rx.doctor_id else None,
        'appointment_id': rx.appointment_id,
        'clinic_id': rx.clinic_id,
        'diagnosis': rx.diagnosis,
        'notes': rx.notes,
        'follow_up_date': rx.follow_up_date.isoformat() if rx.follow_up_date else None,
        'created_at': rx.created_at.strftime('%Y-%m-%d %H:%M:%S'),
        'medicines': [
            {'medicine_name': m.medicine_name, 'dosage': m.dosage, 'frequency': m.frequency, 'duration': m.duration}
            for m in rx.medicines.all()
        ],
        'lab_tests': [{'test_name': t.test_name} for t in rx.lab_tests.all()],
    }
