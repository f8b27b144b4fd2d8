"""Patient documents and medicine reminders."""
from __future__ import annotations

import logging

from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated

from .. import responses
from ..models import MedicineReminder, PatientDocument
from ..serializers.pharmacy import DocumentSerializer, ReminderSerializer
from ..services import accounts
from ..services.patients import add_document

logger = logging.getLogger(__name__)


def _patient(request):
    return accounts.find_patient_for_user(request.user)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def documents(request):
    patient = _patient(request)
    if patient is None:
        return responses.not_found('Patient not found')
    qs = PatientDocument.objects.filter(patient=patient).order_by('-uploaded_at')
    return responses.success(DocumentSerializer(qs, many=True).data, 'Documents retrieved')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def upload_document(request):
    patient = _patient(request)
    if patient is None:
        return responses.not_found('Patient not found')
    f = request.FILES.get('document')
    if not f:
        return responses.bad_request('No file uploaded')
    doc = add_document(patient, f, request.data.get('document_type') or 'Other')
    logger.info('document %s uploaded for patient %s', doc.id, patient.pk)
    return responses.created(DocumentSerializer(doc).data, 'Document uploaded successfully')


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def document_detail(request, document_id: int):
    patient = _patient(request)
    doc = PatientDocument.objects.filter(id=document_id, patient=patient).first() if patient else None
    if doc is None:
        return responses.not_found('Document not found')
    doc.file.delete(save=False)
    doc.delete()
    return responses.deleted('Document deleted')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser, FormParser])
def reminders(request):
    patient = _patient(request)
    if patient is None:
        return responses.not_found('Patient not found')
    if request.method == 'GET':
        qs = MedicineReminder.objects.filter(patient=patient).order_by('reminder_time')
        return responses.success(ReminderSerializer(qs, many=True).data, 'Reminders retrieved')
    s = ReminderSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    s.save(patient=patient)
    return responses.created(s.data, 'Reminder created')


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def reminder_detail(request, reminder_id: int):
    patient = _patient(request)
    deleted = 0
    if patient is not None:
        deleted, _ = MedicineReminder.objects.filter(id=reminder_id, patient=patient).delete()
    if not deleted:
        return responses.not_found('Reminder not found')
    return responses.deleted('Reminder deleted')
