from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from clinic.models import Clinic, Device, Doctor, LabOrder, LabTestType, Medicine, PatientDocument, User

from .conftest import client_for, make_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def media(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    return tmp_path


def test_upload_document(media, patient):
    user, record = patient
    f = SimpleUploadedFile('report.pdf', b'%PDF-1.4 test', content_type='application/pdf')
    r = client_for(user).post('/api/documents/upload', {'document': f, 'document_type': 'Lab Report'},
                              format='multipart')
    assert r.status_code == 201
    doc = PatientDocument.objects.get(patient=record)
    assert doc.document_type == 'Lab Report'
    assert doc.content_type == 'application/pdf'

    listing = client_for(user).get('/api/documents')
    assert len(listing.data['data']) == 1


def test_upload_without_file_is_400(media, patient):
    user, _ = patient
    r = client_for(user).post('/api/documents/upload', {}, format='multipart')
    assert r.status_code == 400
    assert r.data['message'] == 'No file uploaded'


def test_upload_rejects_executable(media, patient):
    user, _ = patient
    f = SimpleUploadedFile('run.exe', b'MZ', content_type='application/x-msdownload')
    r = client_for(user).post('/api/documents/upload', {'document': f}, format='multipart')
    assert r.status_code == 400
    assert not PatientDocument.objects.exists()


def test_document_of_other_patient_is_404(media, patient, other_patient):
    owner, _ = patient
    other_user, _ = other_patient
    f = SimpleUploadedFile('scan.png', b'\x89PNG', content_type='image/png')
    doc_id = client_for(owner).post('/api/documents/upload', {'document': f}, format='multipart').data['data']['id']
    r = client_for(other_user).delete(f'/api/documents/{doc_id}')
    assert r.status_code == 404
    assert PatientDocument.objects.filter(id=doc_id).exists()


def test_reminders_lifecycle(patient):
    user, _ = patient
    client = client_for(user)
    r = client.post('/api/reminders', {'medicine_name': 'Metformin', 'dosage': '500mg', 'reminder_time': '08:00'},
                    format='json')
    assert r.status_code == 201
    rid = r.data['data']['id']
    assert [x['medicine_name'] for x in client.get('/api/reminders').data['data']] == ['Metformin']
    assert client.delete(f'/api/reminders/{rid}').status_code == 200
    assert client.delete(f'/api/reminders/{rid}').status_code == 404


def test_staff_without_patient_record_gets_404_on_reminders(doctor):
    user, _ = doctor
    r = client_for(user).get('/api/reminders')
    assert r.status_code == 404
    assert r.data['message'] == 'Patient not found'


def test_devices_and_readings(doctor):
    user, doc = doctor
    client = client_for(user)
    assert client.post('/api/devices', {'device_name': 'Cuff'}, format='json').status_code == 400

    r = client.post('/api/devices', {'device_name': 'Cuff', 'device_type': 'bp_monitor'}, format='json')
    assert r.status_code == 201
    device_id = r.data['data']['id']
    assert r.data['data']['status'] == 'online'

    r = client.post('/api/devices/readings', {'device_id': device_id, 'reading_type': 'systolic',
                                              'reading_value': 121, 'unit': 'mmHg'}, format='json')
    assert r.status_code == 201
    readings = client.get(f'/api/devices/readings/{device_id}').data['data']
    assert readings[0]['reading_type'] == 'systolic'


def test_foreign_device_is_404(doctor):
    _, doc = doctor
    other = make_user('doc2@clinic.test', 'doctor')
    Doctor.objects.create(user=other, full_name='Other Doc', email=other.email)
    device = Device.objects.create(doctor=doc, device_name='Oximeter', device_type='spo2')
    client = client_for(other)
    assert client.get(f'/api/devices/readings/{device.id}').status_code == 404
    assert client.delete(f'/api/devices/{device.id}').status_code == 404
    r = client.post('/api/devices/readings', {'device_id': device.id, 'reading_type': 'spo2', 'reading_value': 97},
                    format='json')
    assert r.status_code == 404


def test_clinic_manages_only_own_medicines(clinic_owner, medicine):
    user, clinic = clinic_owner
    client = client_for(user)
    r = client.post('/api/medicines', {'name': 'Cetirizine', 'category': 'Allergy', 'mrp': '12.50'}, format='json')
    assert r.status_code == 201
    own_id = r.data['data']['medicine_id']
    assert Medicine.objects.get(medicine_id=own_id).clinic_id == clinic.id

    # system catalogue entries have no clinic and are read-only for clinics
    assert client.put(f'/api/medicines/{medicine.medicine_id}', {'mrp': 1}, format='json').status_code == 403
    assert client.put(f'/api/medicines/{own_id}', {'mrp': '15.00'}, format='json').status_code == 200

    mine = client.get('/api/medicines', {'mine': 'true'}).data['data']
    assert [m['medicine_id'] for m in mine] == [own_id]


def test_patient_cannot_add_medicine(patient):
    user, _ = patient
    r = client_for(user).post('/api/medicines', {'name': 'X', 'mrp': 1}, format='json')
    assert r.status_code == 403


def test_lab_order_takes_price_from_test_type(clinic_owner, patient):
    user, clinic = clinic_owner
    _, record = patient
    test_type = LabTestType.objects.create(clinic=clinic, test_name='CBC', price=Decimal('350'))
    r = client_for(user).post('/api/labs', {'patient_id': record.patient_id, 'test_type': test_type.id},
                              format='json')
    assert r.status_code == 201
    order = LabOrder.objects.get(lab_order_id=r.data['data']['lab_order_id'])
    assert order.test_name == 'CBC'
    assert order.price == Decimal('350')
    assert order.clinic_id == clinic.id


def test_lab_status_must_be_known(clinic_owner, patient):
    user, clinic = clinic_owner
    _, record = patient
    order = LabOrder.objects.create(lab_order_id='LAB-1', patient=record, clinic=clinic, test_name='Lipid')
    client = client_for(user)
    r = client.put('/api/labs/LAB-1', {'status': 'lost'}, format='json')
    assert r.status_code == 400
    assert 'status' in r.data['errors']
    r = client.put('/api/labs/LAB-1', {'status': 'sample_collected'}, format='json')
    assert r.status_code == 200
    order.refresh_from_db()
    assert order.status == 'sample_collected'


def test_patient_sees_only_own_lab_orders(clinic_owner, patient, other_patient):
    _, clinic = clinic_owner
    user, record = patient
    _, other = other_patient
    LabOrder.objects.create(lab_order_id='LAB-A', patient=record, clinic=clinic, test_name='CBC')
    LabOrder.objects.create(lab_order_id='LAB-B', patient=other, clinic=clinic, test_name='CBC')
    r = client_for(user).get('/api/labs')
    assert [o['lab_order_id'] for o in r.data['data']] == ['LAB-A']
    assert client_for(user).get('/api/labs/LAB-B').status_code == 404


def test_clinic_writes_are_admin_only(clinic_owner):
    owner, clinic = clinic_owner
    admin = make_user('root@clinic.test', 'admin')
    assert client_for(owner).put(f'/api/clinics/{clinic.id}', {'city': 'Pune'}, format='json').status_code == 403

    r = client_for(admin).put(f'/api/clinics/{clinic.id}', {'city': 'Pune'}, format='json')
    assert r.status_code == 200
    assert Clinic.objects.get(id=clinic.id).city == 'Pune'

    r = client_for(admin).post('/api/clinics', {'clinic_name': 'Second Clinic'}, format='json')
    assert r.status_code == 201
    listing = client_for(owner).get('/api/clinics', {'limit': 1})
    assert listing.data['data']['pagination']['total'] == 2
    assert len(listing.data['data']['clinics']) == 1


def test_doctor_profile_update(doctor):
    user, doc = doctor
    client = client_for(user)
    r = client.put('/api/doctors/profile', {'bio': '<b>Heart</b> specialist', 'email': 'hijack@x.test'},
                   format='json')
    assert r.status_code == 200
    doc.refresh_from_db()
    assert doc.bio == 'Heart specialist'
    assert doc.email == 'doc@clinic.test'


def test_clinic_staff_with_password_gets_login(clinic_owner):
    user, clinic = clinic_owner
    r = client_for(user).post('/api/clinic/staff', {
        'full_name': 'Meera', 'role': 'receptionist', 'email': 'meera@clinic.test', 'password': 'frontdesk1',
    }, format='json')
    assert r.status_code == 201
    login = User.objects.get(email='meera@clinic.test')
    assert login.role == 'receptionist'
    assert login.check_password('frontdesk1')


def test_analytics_stats_for_clinic_user(clinic_owner):
    user, _ = clinic_owner
    r = client_for(user).get('/api/analytics/stats')
    assert r.status_code == 200
    assert r.data['data'] == {'totalAppointments': 0, 'totalPatients': 0, 'totalRevenue': 0.0}


def test_dashboard_hourly_slots(doctor):
    user, _ = doctor
    r = client_for(user).get('/api/dashboard/appointments')
    assert r.status_code == 200
    assert [row['time'] for row in r.data['data']] == ['9 AM', '10 AM', '11 AM', '12 PM', '2 PM', '3 PM', '4 PM']
