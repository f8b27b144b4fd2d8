"""
Patient management views.

Staff roles create, list and edit patient records; a signed-in patient
reads and edits their own profile (including allergies and chronic
conditions) and uploads a profile photo.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Patient
from ..serializers.patient import (
    PatientCreateSerializer,
    PatientListQuerySerializer,
    PatientSerializer,
    PatientUpdateSerializer,
    ProfileUpdateSerializer,
)
from ..services import accounts, scope
from ..services.audit import log_action
from ..services.patients import profile_dict, save_profile_photo, update_profile

CAN_CREATE = ('admin', 'clinic', 'receptionist', 'doctor')
CAN_EDIT = ('admin', 'receptionist', 'doctor')


def _own_patient(user) -> Patient | None:
    return accounts.find_patient_for_user(user)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def my_profile(request):
    patient = _own_patient(request.user)
    if patient is None:
        return responses.not_found('Patient profile not found')
    if request.method == 'GET':
        return responses.success(profile_dict(patient), 'Profile retrieved')

    s = ProfileUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    allergies = vd.pop('allergies', None)
    chronic = vd.pop('chronicDiseases', None)
    patient = update_profile(patient, vd, allergies=allergies, chronic=chronic)
    return responses.updated(profile_dict(patient), 'Profile updated successfully')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def upload_profile_photo(request):
    patient = _own_patient(request.user)
    if patient is None:
        return responses.not_found('Patient profile not found')
    f = request.FILES.get('profile_photo')
    if not f:
        return responses.bad_request('No file uploaded')
    url = save_profile_photo(patient, f)
    return responses.success({'profile_photo': url}, 'Profile photo updated')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def patients(request):
    if request.method == 'POST':
        if request.user.role not in CAN_CREATE:
            return responses.role_forbidden(request.user)
        s = PatientCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        if Patient.objects.filter(patient_id=s.validated_data['patient_id']).exists():
            return responses.bad_request('Patient with this ID already exists')
        patient = Patient(**s.validated_data)
        patient.save(force_insert=True)
        log_action(user=request.user, action='patient_create', object_type='patient', object_id=patient.pk)
        return responses.created(PatientSerializer(patient).data, 'Patient created successfully')

    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Patient.objects.order_by('-created_at')
    if request.user.role == 'patient':
        qs = qs.filter(patient_id=accounts.role_id(request.user, 'patient_id'))
    rows, pagination = scope.paginate(qs, q.validated_data['page'], q.validated_data['limit'])
    return responses.success({
        'patients': PatientSerializer(rows, many=True).data,
        'pagination': pagination,
    }, 'Patients retrieved')


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def patient_detail(request, patient_id: str):
    patient = Patient.objects.filter(patient_id=patient_id).first()
    if patient is None:
        return responses.not_found('Patient not found')

    if request.method == 'GET':
        scope.ensure_own_patient(request.user, patient_id)
        return responses.success(PatientSerializer(patient).data, 'Patient retrieved')

    if request.method == 'PUT':
        if request.user.role not in CAN_EDIT:
            return responses.role_forbidden(request.user)
        s = PatientUpdateSerializer(patient, data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        s.save()
        return responses.updated(s.data, 'Patient updated successfully')

    if request.user.role != 'admin':
        return responses.role_forbidden(request.user)
    patient.delete()
    log_action(user=request.user, action='patient_delete', object_type='patient', object_id=patient_id)
    return responses.deleted('Patient deleted successfully')
