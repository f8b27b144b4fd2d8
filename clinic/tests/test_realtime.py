import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator

from clinic.models import Clinic, Doctor
from clinic.services.accounts import access_token_for
from clinic.services.appointments import queue_group
from medportal.asgi import application

from .conftest import make_user

# consumers reach the database from a worker thread
pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture(autouse=True)
def in_memory_layer(settings):
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}


def _queue_path(clinic_id, token=None):
    path = f"/ws/clinic/{clinic_id}/queue/"
    return f"{path}?token={token}" if token else path


def connect(path, event=None):
    """Open the socket, optionally push one group event, and collect what arrives."""
    async def run():
        comm = WebsocketCommunicator(application, path)
        connected, code = await comm.connect()
        received = []
        if connected:
            received.append(await comm.receive_json_from())
            if event is not None:
                clinic_id, payload = event
                await get_channel_layer().group_send(queue_group(clinic_id), payload)
                received.append(await comm.receive_json_from())
            await comm.disconnect()
        return connected, code, received
    return async_to_sync(run)()


def test_clinic_owner_joins_with_query_token(transactional_db, clinic_owner):
    user, clinic = clinic_owner
    connected, _, received = connect(_queue_path(clinic.id, access_token_for(user)))
    assert connected
    assert received == [{"type": "welcome", "clinicId": clinic.id}]


def test_status_update_reaches_socket(transactional_db, clinic_owner):
    user, clinic = clinic_owner
    update = {"type": "queue.update", "appointmentId": "APT-1", "status": "in_progress", "doctorId": 1,
              "date": "2024-05-01"}
    connected, _, received = connect(_queue_path(clinic.id, access_token_for(user)), event=(clinic.id, update))
    assert connected
    assert received[1] == update


def test_anonymous_socket_is_closed(transactional_db, clinic_owner):
    _, clinic = clinic_owner
    connected, code, _ = connect(_queue_path(clinic.id))
    assert not connected
    assert code == 4003


def test_bad_token_is_closed(transactional_db, clinic_owner):
    _, clinic = clinic_owner
    connected, code, _ = connect(_queue_path(clinic.id, "not-a-jwt"))
    assert not connected
    assert code == 4003


def test_clinic_owner_cannot_watch_other_clinic(transactional_db, clinic_owner):
    user, _ = clinic_owner
    other = Clinic.objects.create(clinic_name='Elsewhere Clinic')
    connected, code, _ = connect(_queue_path(other.id, access_token_for(user)))
    assert not connected
    assert code == 4003


def test_doctor_needs_clinic_link(transactional_db, doctor, clinic_owner):
    user, _ = doctor
    _, clinic = clinic_owner
    connected, _, _ = connect(_queue_path(clinic.id, access_token_for(user)))
    assert connected

    outsider = make_user('outsider@clinic.test', 'doctor')
    Doctor.objects.create(user=outsider, full_name='Out Sider', email=outsider.email)
    connected, code, _ = connect(_queue_path(clinic.id, access_token_for(outsider)))
    assert not connected
    assert code == 4003


def test_patient_is_closed(transactional_db, patient, clinic_owner):
    user, _ = patient
    _, clinic = clinic_owner
    connected, code, _ = connect(_queue_path(clinic.id, access_token_for(user)))
    assert not connected
    assert code == 4003
