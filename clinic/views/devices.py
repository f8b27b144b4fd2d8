from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import Device, DeviceReading
from ..permissions import IsDoctorRole
from ..serializers.pharmacy import DeviceReadingSerializer, DeviceSerializer
from ..services import scope
from ..services.dates import parse_int

READING_LIMIT = 100


def _own_device(doctor, device_id):
    return Device.objects.filter(id=device_id, doctor=doctor).first()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def devices(request):
    doctor = scope.current_doctor(request.user)
    if request.method == 'GET':
        qs = Device.objects.filter(doctor=doctor).order_by('-created_at')
        return responses.success(DeviceSerializer(qs, many=True).data, 'Devices retrieved')

    if not request.data.get('device_name') or not request.data.get('device_type'):
        return responses.bad_request('device_name and device_type are required')
    s = DeviceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    s.save(doctor=doctor, status='online', battery_level=100)
    return responses.created(s.data, 'Device added successfully')


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def device_detail(request, device_id: int):
    device = _own_device(scope.current_doctor(request.user), device_id)
    if device is None:
        return responses.not_found('Device not found')
    if request.method == 'DELETE':
        device.delete()
        return responses.deleted('Device removed')
    s = DeviceSerializer(device, data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    s.save()
    return responses.updated(s.data, 'Device updated')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def create_reading(request):
    data = {key: request.data.get(key) for key in request.data}
    if 'reading_value' in data and 'value' not in data:
        data['value'] = data.pop('reading_value')
    if 'device_id' in data and 'device' not in data:
        data['device'] = data.pop('device_id')
    if not data.get('device') or not data.get('reading_type') or data.get('value') in (None, ''):
        return responses.bad_request('device_id, reading_type and reading_value are required')
    if _own_device(scope.current_doctor(request.user), parse_int(data['device'], field='device_id')) is None:
        return responses.not_found('Device not found')
    s = DeviceReadingSerializer(data=data)
    s.is_valid(raise_exception=True)
    s.save()
    return responses.created(s.data, 'Reading stored')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def device_readings(request, device_id: int):
    device = _own_device(scope.current_doctor(request.user), device_id)
    if device is None:
        return responses.not_found('Device not found')
    qs = DeviceReading.objects.filter(device=device).order_by('-recorded_at')[:READING_LIMIT]
    return responses.success(DeviceReadingSerializer(qs, many=True).data, 'Readings retrieved')
