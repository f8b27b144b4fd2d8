from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Clinic
from ..serializers.clinic import ClinicSerializer
from ..serializers.patient import PatientListQuerySerializer
from ..services import scope


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def clinics(request):
    if request.method == 'POST':
        if request.user.role != 'admin':
            return responses.role_forbidden(request.user)
        s = ClinicSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        s.save()
        return responses.created(s.data, 'Clinic created successfully')

    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    rows, pagination = scope.paginate(Clinic.objects.order_by('id'), q.validated_data['page'],
                                      q.validated_data['limit'])
    return responses.success({'clinics': ClinicSerializer(rows, many=True).data, 'pagination': pagination},
                             'Clinics retrieved')


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def clinic_detail(request, clinic_id: int):
    clinic = Clinic.objects.filter(id=clinic_id).first()
    if clinic is None:
        return responses.not_found('Clinic not found')
    if request.method == 'GET':
        return responses.success(ClinicSerializer(clinic).data, 'Clinic retrieved')
    if request.user.role != 'admin':
        return responses.role_forbidden(request.user)
    if request.method == 'PUT':
        s = ClinicSerializer(clinic, data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        s.save()
        return responses.updated(s.data, 'Clinic updated successfully')
    clinic.delete()
    return responses.deleted('Clinic deleted successfully')
