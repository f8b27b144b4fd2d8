from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Appointment, Doctor, Patient, Prescription
from ..serializers.patient import PatientListQuerySerializer
from ..services import accounts, scope
from ..services.dates import parse_int
from ..services.prescriptions import create_prescription, prescription_dict

CAN_WRITE = ('doctor', 'admin')
CAN_LIST = ('doctor', 'admin', 'receptionist')


def _qs():
    return (
        Prescription.objects.select_related('patient', 'doctor')
        .prefetch_related('medicines', 'lab_tests').order_by('-created_at')
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def prescriptions(request):
    if request.method == 'POST':
        if request.user.role not in CAN_WRITE:
            return responses.role_forbidden(request.user)
        return _create(request)

    if request.user.role not in CAN_LIST:
        return responses.role_forbidden(request.user)
    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    rows, pagination = scope.paginate(_qs(), q.validated_data['page'], q.validated_data['limit'])
    return responses.success({
        'prescriptions': [prescription_dict(rx) for rx in rows],
        'pagination': pagination,
    }, 'Prescriptions retrieved')


def _create(request):
    data = request.data
    if not data.get('patient_id') or not (data.get('diagnosis') or '').strip():
        return responses.bad_request('patient_id and diagnosis are required')
    patient = Patient.objects.get(patient_id=data['patient_id'])

    doctor = None
    if request.user.role == 'doctor':
        doctor_id = accounts.role_id(request.user, 'doctor_id')
    else:
        doctor_id = parse_int(data.get('doctor_id'), field='doctor_id')
    if doctor_id:
        doctor = Doctor.objects.get(id=doctor_id)
    appointment = None
    if data.get('appointment_id'):
        appointment = Appointment.objects.get(appointment_id=data['appointment_id'])

    medicines = data.get('medicines') if isinstance(data.get('medicines'), list) else []
    lab_tests = data.get('lab_tests') if isinstance(data.get('lab_tests'), list) else []
    rx = create_prescription(
        patient=patient,
        doctor=doctor,
        appointment=appointment,
        diagnosis=data['diagnosis'].strip(),
        notes=data.get('notes') or '',
        follow_up_date=data.get('follow_up_date'),
        medicines=medicines,
        lab_tests=lab_tests,
    )
    return responses.created(prescription_dict(rx), 'Prescription created successfully')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def prescription_detail(request, prescription_id: str):
    rx = _qs().filter(prescription_id=prescription_id).first()
    if rx is None:
        return responses.not_found('Prescription not found')
    scope.ensure_own_patient(request.user, rx.patient_id)
    return responses.success(prescription_dict(rx), 'Prescription retrieved')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_prescriptions(request, patient_id: str):
    scope.ensure_own_patient(request.user, patient_id)
    rows = _qs().filter(patient_id=patient_id)
    return responses.success([prescription_dict(rx) for rx in rows], 'Patient prescriptions retrieved')
