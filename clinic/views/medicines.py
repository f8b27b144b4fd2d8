from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Medicine
from ..serializers.pharmacy import MedicineSerializer
from ..services import accounts, ids

CAN_MANAGE = ('clinic', 'pharmacy')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def medicines(request):
    """Catalogue search; clinics see their own stock plus the system catalogue."""
    if request.method == 'POST':
        if request.user.role not in CAN_MANAGE:
            return responses.role_forbidden(request.user)
        clinic_id = accounts.role_id(request.user, 'clinic_id')
        if not clinic_id:
            return responses.forbidden('No clinic is linked to this account')
        s = MedicineSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        medicine = s.save(clinic_id=clinic_id, medicine_id=request.data.get('medicine_id') or ids.medicine_id())
        return responses.created(MedicineSerializer(medicine).data, 'Medicine added successfully')

    params = request.query_params
    qs = Medicine.objects.select_related('clinic')
    category = params.get('category')
    if category and category != 'All':
        qs = qs.filter(category=category)
    search = (params.get('search') or '').strip()
    if search:
        qs = qs.filter(Q(name__icontains=search) | Q(manufacturer__icontains=search))
    clinic_id = accounts.role_id(request.user, 'clinic_id') if request.user.role == 'clinic' else None
    if clinic_id:
        if params.get('mine') == 'true':
            qs = qs.filter(clinic_id=clinic_id)
        else:
            qs = qs.filter(Q(clinic_id=clinic_id) | Q(clinic__isnull=True))
    return responses.success(MedicineSerializer(qs.order_by('name'), many=True).data,
                             'Medicines retrieved successfully')


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def medicine_detail(request, medicine_id: str):
    medicine = Medicine.objects.select_related('clinic').filter(medicine_id=medicine_id).first()
    if medicine is None:
        return responses.not_found('Medicine not found')
    if request.method == 'GET':
        return responses.success(MedicineSerializer(medicine).data, 'Medicine details retrieved')

    clinic_id = accounts.role_id(request.user, 'clinic_id')
    if request.user.role not in CAN_MANAGE or not clinic_id or medicine.clinic_id != clinic_id:
        return responses.forbidden('Access denied to this medicine record')
    if request.method == 'DELETE':
        medicine.delete()
        return responses.deleted('Medicine deleted')
    s = MedicineSerializer(medicine, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    return responses.updated(s.data, 'Medicine updated')
