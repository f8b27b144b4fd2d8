"""
Clinic operations.

Everything under ``/api/clinic/`` is scoped to the clinic attached to
the requesting account (the owner's clinic, or the clinic a staff
member works for) and to the doctors linked to that clinic.
"""
from __future__ import annotations

import logging
import secrets

from django.db import transaction
from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import (
    Appointment,
    ClinicStaff,
    Doctor,
    DoctorClinic,
    Invoice,
    LabOrder,
    LabTestType,
    Medicine,
    Patient,
    Prescription,
)
from ..permissions import IsClinicRole, IsFrontDesk
from ..serializers.clinic import DoctorSummarySerializer, LabOrderSerializer, LabTestTypeSerializer, StaffSerializer
from ..serializers.patient import PatientSerializer
from ..serializers.pharmacy import MedicineSerializer
from ..services import accounts, ids, scope
from ..services.appointments import (
    TransitionError,
    appointment_dict,
    change_status,
    create_appointment,
    normalize_status,
)
from ..services.billing import create_invoice, invoice_dict, record_payment
from ..services.dates import parse_date, parse_int, parse_time, today
from ..services.doctors import invalidate_doctor_cache
from ..services.prescriptions import prescription_dict

logger = logging.getLogger(__name__)

APPOINTMENT_EDITABLE = ['appointment_type', 'mode', 'reason_for_visit']


def _doctor_ids(clinic) -> list[int]:
    return list(DoctorClinic.objects.filter(clinic=clinic).values_list('doctor_id', flat=True))


def _clinic_appointments(clinic):
    return (
        Appointment.objects.select_related('patient', 'doctor', 'clinic')
        .filter(doctor_id__in=_doctor_ids(clinic))
    )


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def today_patients(request):
    clinic = scope.current_clinic(request.user)
    qs = _clinic_appointments(clinic).filter(appointment_date=today()).order_by('appointment_time')
    return responses.success([appointment_dict(a) for a in qs], "Retrieved today's patient roster")


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def upcoming_patients(request):
    clinic = scope.current_clinic(request.user)
    qs = (
        _clinic_appointments(clinic)
        .filter(appointment_date__gt=today(), status=Appointment.STATUS_SCHEDULED)
        .order_by('appointment_date', 'appointment_time')
    )
    return responses.success([appointment_dict(a) for a in qs], 'Retrieved upcoming scheduled patients')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def completed_patients(request):
    clinic = scope.current_clinic(request.user)
    qs = (
        _clinic_appointments(clinic).filter(status=Appointment.STATUS_COMPLETED)
        .order_by('-appointment_date', '-appointment_time')
    )
    return responses.success([appointment_dict(a) for a in qs], 'Retrieved completed patient records')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def clinic_patients(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        qs = (
            Patient.objects.filter(appointments__doctor_id__in=_doctor_ids(clinic))
            .distinct().order_by('full_name')
        )
        return responses.success(PatientSerializer(qs, many=True).data, 'Clinic patients retrieved')

    data = request.data
    full_name = (data.get('full_name') or '').strip()
    email = (data.get('email') or '').strip()
    phone = (data.get('phone') or '').strip()
    if not full_name:
        return responses.bad_request('full_name is required')
    lookup = Q()
    if email:
        lookup |= Q(email__iexact=email)
    if phone:
        lookup |= Q(phone=phone)
    patient = Patient.objects.filter(lookup).first() if lookup else None
    if patient is None:
        patient = accounts.create_patient_record(
            full_name=full_name, email=email, phone=phone,
            age=parse_int(data.get('age'), field='age'), gender=data.get('gender') or '',
        )
    return responses.success(PatientSerializer(patient).data, 'Patient record added')


# ---------------------------------------------------------------------------
# Appointments & queue
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def clinic_appointments(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        qs = _clinic_appointments(clinic).order_by('-appointment_date', 'appointment_time')
        return responses.success([appointment_dict(a) for a in qs], 'All clinic appointments retrieved')

    data = request.data
    doctor_id = parse_int(data.get('doctor_id'), field='doctor_id')
    if not data.get('patient_id') or not doctor_id or not data.get('appointment_date'):
        return responses.bad_request('patient_id, doctor_id and appointment_date are required')
    if doctor_id not in _doctor_ids(clinic):
        return responses.forbidden('Doctor is not assigned to this clinic')
    appointment = create_appointment(
        patient=Patient.objects.get(patient_id=data['patient_id']),
        doctor=Doctor.objects.get(id=doctor_id),
        clinic=clinic,
        appointment_date=data['appointment_date'],
        appointment_time=data.get('appointment_time'),
        appointment_type=data.get('type') or 'consultation',
        mode=data.get('mode') or 'in-person',
        reason_for_visit=data.get('reason') or data.get('reason_for_visit') or '',
    )
    return responses.created(appointment_dict(appointment), 'Appointment created successfully')


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def clinic_appointment_detail(request, appointment_id: str):
    clinic = scope.current_clinic(request.user)
    appointment = _clinic_appointments(clinic).filter(appointment_id=appointment_id).first()
    if appointment is None:
        return responses.not_found('Appointment not found in clinic records')

    if request.method == 'DELETE':
        appointment.delete()
        return responses.deleted('Appointment deleted')

    data = request.data
    fields = {f: data[f] for f in APPOINTMENT_EDITABLE if f in data}
    if 'appointment_date' in data:
        fields['appointment_date'] = parse_date(data['appointment_date'], field='appointment_date')
    if 'appointment_time' in data:
        fields['appointment_time'] = parse_time(data['appointment_time'])
    if 'doctor_id' in data:
        doctor_id = parse_int(data['doctor_id'], field='doctor_id')
        if doctor_id not in _doctor_ids(clinic):
            return responses.forbidden('Doctor is not assigned to this clinic')
        fields['doctor_id'] = doctor_id
    status = data.get('status')
    if status is not None and normalize_status(status) is None:
        return responses.bad_request(f'Invalid status: {status}')
    try:
        appointment = change_status(appointment, status or appointment.status, operator=request.user, **fields)
    except TransitionError as exc:
        return responses.bad_request(str(exc))
    return responses.updated(appointment_dict(appointment), 'Appointment updated')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsFrontDesk])
def clinic_queue(request):
    clinic = scope.current_clinic(request.user)
    qs = (
        _clinic_appointments(clinic)
        .filter(appointment_date=today(),
                status__in=[Appointment.STATUS_SCHEDULED, Appointment.STATUS_IN_PROGRESS])
        .order_by('appointment_time')
    )
    return responses.success([appointment_dict(a) for a in qs], 'Queue retrieved')


# ---------------------------------------------------------------------------
# Doctors & staff
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_doctors(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        return responses.success(DoctorSummarySerializer(clinic.doctors.order_by('full_name'), many=True).data,
                                 'Clinic doctors retrieved')

    data = request.data
    doctor_id = parse_int(data.get('doctor_id'), field='doctor_id')
    with transaction.atomic():
        if not doctor_id and data.get('name') and data.get('email') and data.get('password'):
            if accounts.email_taken(data['email']):
                return responses.bad_request('A user with this email already exists')
            user = accounts.create_user(email=data['email'], password=data['password'], full_name=data['name'],
                                        role='doctor', mobile=data.get('mobile') or '')
            doctor = Doctor.objects.create(
                user=user,
                full_name=data['name'],
                email=user.email,
                mobile=data.get('mobile') or '',
                specializations=[data.get('specialization') or 'General Physician'],
                qualifications=data.get('qualification') or 'MBBS',
                experience_years=parse_int(data.get('experience'), default=0, field='experience'),
                medical_council_reg_no=data.get('mciReg') or f'TEMP-{secrets.token_hex(4).upper()}',
            )
            doctor_id = doctor.id
        if not doctor_id:
            return responses.bad_request('Doctor ID or complete registration details required')
        doctor = Doctor.objects.get(id=doctor_id)
        link, created = DoctorClinic.objects.get_or_create(doctor=doctor, clinic=clinic)
    if created:
        logger.info('doctor %s linked to clinic %s', doctor.id, clinic.id)
    invalidate_doctor_cache()
    return responses.created({'id': link.id, 'doctor_id': doctor.id, 'clinic_id': clinic.id},
                             'Doctor linked to clinic successfully')


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_doctor_detail(request, doctor_id: int):
    clinic = scope.current_clinic(request.user)
    deleted, _ = DoctorClinic.objects.filter(clinic=clinic, doctor_id=doctor_id).delete()
    if not deleted:
        return responses.not_found('Doctor is not linked to this clinic')
    invalidate_doctor_cache()
    return responses.deleted('Doctor unlinked from clinic')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_staff(request):
    """List or add staff.  A ``password`` in the body also creates a login for the staff member."""
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        return responses.success(StaffSerializer(clinic.staff.order_by('full_name'), many=True).data,
                                 'Staff retrieved')

    s = StaffSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    password = request.data.get('password')
    with transaction.atomic():
        user = None
        if password:
            email = s.validated_data.get('email')
            if not email:
                return responses.bad_request('email is required to create a staff login')
            if (s.validated_data.get('role') or 'receptionist') not in accounts.STAFF_ROLES:
                return responses.bad_request('Validation failed', errors={
                    'role': [f"Staff logins must be one of {', '.join(sorted(accounts.STAFF_ROLES))}"],
                })
            if accounts.email_taken(email):
                return responses.bad_request('A user with this email already exists')
            user = accounts.create_user(email=email, password=password, full_name=s.validated_data['full_name'],
                                        role=s.validated_data.get('role') or 'receptionist',
                                        mobile=s.validated_data.get('mobile') or '')
        staff = s.save(clinic=clinic, user=user, is_active=True)
    return responses.created(StaffSerializer(staff).data, 'Staff member added')


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_staff_detail(request, staff_id: int):
    clinic = scope.current_clinic(request.user)
    staff = ClinicStaff.objects.filter(id=staff_id, clinic=clinic).first()
    if staff is None:
        return responses.not_found('Staff member not found')
    if request.method == 'DELETE':
        staff.delete()
        return responses.deleted('Staff member removed')
    s = StaffSerializer(staff, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    return responses.updated(s.data, 'Staff member updated')


# ---------------------------------------------------------------------------
# Records, labs, billing, pharmacy
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_prescriptions(request):
    clinic = scope.current_clinic(request.user)
    qs = (
        Prescription.objects.filter(clinic=clinic).select_related('patient', 'doctor')
        .prefetch_related('medicines', 'lab_tests').order_by('-created_at')
    )
    return responses.success([prescription_dict(rx) for rx in qs], 'Clinic prescriptions retrieved')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_labs(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        qs = LabTestType.objects.filter(clinic=clinic).order_by('test_name')
        return responses.success(LabTestTypeSerializer(qs, many=True).data, 'Lab tests retrieved')
    s = LabTestTypeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    s.save(clinic=clinic)
    return responses.created(s.data, 'Lab test added')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_lab_orders(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        qs = LabOrder.objects.filter(clinic=clinic).select_related('patient', 'doctor').order_by('-order_date')
        return responses.success(LabOrderSerializer(qs, many=True).data, 'Lab orders retrieved')

    data = request.data
    if not data.get('patient_id'):
        return responses.bad_request('patient_id is required')
    test_type = None
    test_type_id = parse_int(data.get('test_type_id'), field='test_type_id')
    if test_type_id:
        test_type = LabTestType.objects.filter(id=test_type_id, clinic=clinic).first()
        if test_type is None:
            return responses.not_found('Lab test type not found')
    test_name = data.get('test_name') or (test_type.test_name if test_type else '')
    if not test_name:
        return responses.bad_request('test_type_id or test_name is required')
    doctor_id = parse_int(data.get('doctor_id'), field='doctor_id')
    order = LabOrder.objects.create(
        lab_order_id=ids.lab_order_id(),
        patient=Patient.objects.get(patient_id=data['patient_id']),
        doctor=Doctor.objects.get(id=doctor_id) if doctor_id else None,
        clinic=clinic,
        test_type=test_type,
        test_name=test_name,
        priority=data.get('priority') or 'Normal',
        notes=data.get('notes') or '',
        price=test_type.price if test_type else 0,
    )
    return responses.created(LabOrderSerializer(order).data, 'Lab order created')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_billing(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        qs = (
            Invoice.objects.filter(clinic=clinic).select_related('patient')
            .prefetch_related('items').order_by('-created_at')
        )
        return responses.success([invoice_dict(i) for i in qs], 'Invoices retrieved')

    data = request.data
    items = data.get('services') or data.get('items') or []
    if not data.get('patient_id') or not isinstance(items, list) or not items:
        return responses.bad_request('patient_id and at least one service are required')
    appointment = None
    if data.get('appointment_id'):
        appointment = _clinic_appointments(clinic).filter(appointment_id=data['appointment_id']).first()
    invoice = create_invoice(
        clinic=clinic,
        patient=Patient.objects.get(patient_id=data['patient_id']),
        items=items,
        appointment=appointment,
        discount=data.get('discount'),
        paid_amount=data.get('paid_amount'),
        payment_method=data.get('payment_mode') or data.get('payment_method') or 'Cash',
    )
    return responses.created(invoice_dict(invoice), 'Invoice generated')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_invoice_detail(request, invoice_id: str):
    clinic = scope.current_clinic(request.user)
    invoice = Invoice.objects.filter(invoice_id=invoice_id, clinic=clinic).first()
    if invoice is None:
        return responses.not_found('Invoice not found')
    invoice = record_payment(
        invoice,
        amount=request.data.get('paid_amount'),
        status=request.data.get('status'),
        payment_method=request.data.get('payment_mode') or request.data.get('payment_method') or 'Cash',
    )
    return responses.success(invoice_dict(invoice), 'Payment recorded')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicRole])
def clinic_medicines(request):
    clinic = scope.current_clinic(request.user)
    if request.method == 'GET':
        qs = Medicine.objects.filter(clinic=clinic).order_by('name')
        return responses.success(MedicineSerializer(qs, many=True).data, 'Inventory retrieved')
    s = MedicineSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    medicine = s.save(clinic=clinic, medicine_id=request.data.get('medicine_id') or ids.medicine_id())
    return responses.created(MedicineSerializer(medicine).data, 'Medicine added to inventory')
