"""
Lab orders.

Listing is scoped by role: clinics see their own clinic's orders,
doctors the orders they placed, patients their own and lab staff their
clinic's.  Admins see everything; any other role, or a user whose profile
cannot be resolved, sees nothing.  Lab staff may update status and results.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import LabOrder
from ..serializers.clinic import LabOrderSerializer
from ..services import accounts, ids, scope

LAB_STATUSES = [choice for choice, _ in LabOrder.STATUS_CHOICES]

CAN_CREATE = ('doctor', 'admin', 'clinic')
CAN_UPDATE = ('doctor', 'admin', 'clinic', 'lab')
CAN_DELETE = ('admin', 'clinic')


# role -> attribute set by attach_role_ids and filtered on
SCOPE_FIELDS = {
    'patient': 'patient_id',
    'doctor': 'doctor_id',
    'clinic': 'clinic_id',
    'lab': 'clinic_id',
}


def _scoped(user):
    """Orders visible to ``user``; empty when the role has no resolvable scope."""
    qs = LabOrder.objects.select_related('patient', 'doctor', 'clinic')
    if user.role == 'admin':
        return qs
    if user.role not in SCOPE_FIELDS:
        return qs.none()
    field = SCOPE_FIELDS[user.role]
    value = accounts.role_id(user, field)
    if not value:
        return qs.none()
    return qs.filter(**{field: value})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def lab_orders(request):
    if request.method == 'POST':
        if request.user.role not in CAN_CREATE:
            return responses.role_forbidden(request.user)
        data = {key: request.data.get(key) for key in request.data}
        if request.user.role == 'clinic':
            data['clinic'] = scope.current_clinic(request.user).id
        if request.user.role == 'doctor':
            data['doctor'] = scope.current_doctor(request.user).id
        if 'patient_id' in data and 'patient' not in data:
            data['patient'] = data.pop('patient_id')
        s = LabOrderSerializer(data=data)
        s.is_valid(raise_exception=True)
        test_type = s.validated_data.get('test_type')
        extra = {'lab_order_id': ids.lab_order_id()}
        if test_type is not None:
            extra.setdefault('test_name', s.validated_data.get('test_name') or test_type.test_name)
            if 'price' not in s.validated_data:
                extra['price'] = test_type.price
        order = s.save(**extra)
        return responses.created(LabOrderSerializer(order).data, 'Lab order created successfully')

    qs = _scoped(request.user)
    status = request.query_params.get('status')
    if status:
        qs = qs.filter(status=status)
    return responses.success(LabOrderSerializer(qs.order_by('-order_date'), many=True).data, 'Lab orders retrieved')


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def lab_order_detail(request, lab_order_id: str):
    order = _scoped(request.user).filter(lab_order_id=lab_order_id).first()
    if order is None:
        return responses.not_found('Lab order not found')

    if request.method == 'GET':
        return responses.success(LabOrderSerializer(order).data, 'Lab order retrieved')

    if request.method == 'PUT':
        if request.user.role not in CAN_UPDATE:
            return responses.role_forbidden(request.user)
        status = request.data.get('status')
        if status not in LAB_STATUSES:
            return responses.bad_request('Validation failed', errors={
                'status': [f"Status must be one of {', '.join(LAB_STATUSES)}"],
            })
        order.status = status
        for field in ('notes', 'result'):
            if request.data.get(field) is not None:
                setattr(order, field, request.data[field])
        order.save()
        return responses.success(LabOrderSerializer(order).data, 'Lab order status updated')

    if request.user.role not in CAN_DELETE:
        return responses.role_forbidden(request.user)
    order.delete()
    return responses.deleted('Lab order deleted successfully')

