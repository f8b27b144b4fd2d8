from django.db import connections
from django.db.utils import DatabaseError
from django.http import JsonResponse
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny

from .. import responses


def _db_alive() -> bool:
    with connections['default'].cursor() as c:
        c.execute('SELECT 1')
        row = c.fetchone()
    return bool(row and row[0] == 1)


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def check_connection(request):
    try:
        _db_alive()
    except DatabaseError as e:
        return responses.error('Database connection failed', 503, errors=str(e))
    return responses.success({'status': 'connected'}, 'Database connection is healthy')


def healthz(request):
    try:
        ok = _db_alive()
        return JsonResponse({'ok': True, 'db': ok})
    except DatabaseError as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
