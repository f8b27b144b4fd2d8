from datetime import time, timedelta
from urllib.parse import parse_qs, urlparse

import pytest
from django.urls import reverse
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from clinic.models import Appointment, Clinic, ClinicStaff, Doctor, LabOrder, Patient, User, VerificationDetail
from clinic.services import google as google_svc
from clinic.services.dates import today

from .conftest import client_for, make_user

pytestmark = pytest.mark.django_db


def login(client, email, password, **extra):
    return client.post(reverse('login_view'), {'email': email, 'password': password, **extra}, format='json')


def test_register_creates_patient_record_and_returns_token():
    client = APIClient()
    r = client.post(reverse('register_view'), {
        'full_name': 'Nina Shah', 'email': 'Nina@Example.com', 'password': 'secret99',
    }, format='json')
    assert r.status_code == 201
    assert r.data['token'] and r.data['refresh']
    assert r.data['user']['role'] == 'patient'
    user = User.objects.get(email='nina@example.com')
    assert Patient.objects.filter(user=user).exists()


def test_register_duplicate_email_is_400():
    make_user('taken@example.com', 'patient')
    r = APIClient().post(reverse('register_view'), {
        'full_name': 'Someone', 'email': 'TAKEN@example.com', 'password': 'secret99',
    }, format='json')
    assert r.status_code == 400
    assert r.data['success'] is False


def test_register_rejects_admin_role():
    r = APIClient().post(reverse('register_view'), {
        'full_name': 'Mallory', 'email': 'm@example.com', 'password': 'secret99', 'role': 'admin',
    }, format='json')
    assert r.status_code == 400
    assert not User.objects.filter(email='m@example.com').exists()


def test_no_role_bypass_in_login():
    u = make_user('u1@example.com', 'patient')
    r = login(APIClient(), 'u1@example.com', 'P@ssw0rd1', role='admin')
    assert r.status_code == 200
    assert r.data['user']['role'] == 'patient'
    u.refresh_from_db()
    assert u.role == 'patient'


def test_login_wrong_password_is_401():
    make_user('u2@example.com', 'patient')
    r = login(APIClient(), 'u2@example.com', 'nope')
    assert r.status_code == 401
    assert r.data['message'] == 'Invalid credentials'


def test_login_missing_fields_is_400():
    r = APIClient().post(reverse('login_view'), {'email': 'x@example.com'}, format='json')
    assert r.status_code == 400


def test_bearer_token_reaches_me():
    make_user('u3@example.com', 'patient', full_name='Third User')
    client = APIClient()
    token = login(client, 'u3@example.com', 'P@ssw0rd1').data['token']
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    r = client.get(reverse('me_view'))
    assert r.status_code == 200
    assert r.data['data']['email'] == 'u3@example.com'


def test_missing_token_is_401():
    r = APIClient().get('/api/appointments/my-appointments')
    assert r.status_code == 401
    assert r.data['success'] is False


def test_garbage_token_is_401():
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')
    r = client.get(reverse('me_view'))
    assert r.status_code == 401


def test_wrong_role_is_403(patient):
    user, _ = patient
    r = client_for(user).get('/api/analytics/stats')
    assert r.status_code == 403
    assert r.data['message'] == 'Role patient is not authorized to access this resource'


def test_refresh_then_logout_blacklists():
    make_user('u4@example.com', 'patient')
    client = APIClient()
    tokens = login(client, 'u4@example.com', 'P@ssw0rd1').data
    r = client.post(reverse('jwt_refresh_view'), {'refresh': tokens['refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['data']['token']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['token']}")
    r = client.post(reverse('jwt_logout_view'), {}, format='json')
    assert r.status_code == 200
    assert r.data['data']['blacklisted'] >= 1

    r = APIClient().post(reverse('jwt_refresh_view'), {'refresh': tokens['refresh']}, format='json')
    assert r.status_code == 401


def test_otp_disabled_without_demo_code(settings):
    settings.OTP_DEMO_CODE = ''
    r = APIClient().post(reverse('verify_otp_view'), {'email': 'a@example.com', 'otp': '123456'}, format='json')
    assert r.status_code == 501


def test_otp_demo_code(settings):
    settings.OTP_DEMO_CODE = '424242'
    make_user('otp@example.com', 'patient')
    client = APIClient()
    bad = client.post(reverse('verify_otp_view'), {'email': 'otp@example.com', 'otp': '000000'}, format='json')
    assert bad.status_code == 400
    ok = client.post(reverse('verify_otp_view'), {'email': 'otp@example.com', 'otp': '424242'}, format='json')
    assert ok.status_code == 200
    assert ok.data['token']


VALID_DOCTOR = {
    'name': 'Dr. Kiran', 'email': 'kiran@example.com', 'mobile': '9000000000', 'password': 'secret99',
    'mciReg': 'MCI-1', 'councilName': 'KMC', 'regYear': 2010, 'degrees': 'MBBS',
    'university': 'RGUHS', 'gradYear': 2009, 'experience': 12,
}


def test_register_doctor_creates_verification():
    r = APIClient().post(reverse('register_doctor_view'), {
        **VALID_DOCTOR,
        'bankDetails': {'pan': 'ABCDE1234F', 'ifsc': 'HDFC0001234'},
    }, format='json')
    assert r.status_code == 200
    doctor = Doctor.objects.get(email='kiran@example.com')
    assert doctor.verification_status == 'pending'
    assert VerificationDetail.objects.filter(doctor=doctor, pan_number='ABCDE1234F').exists()


def test_register_doctor_rejects_bad_pan():
    r = APIClient().post(reverse('register_doctor_view'), {
        **VALID_DOCTOR, 'bankDetails': {'pan': 'BAD'},
    }, format='json')
    assert r.status_code == 400
    assert not User.objects.filter(email='kiran@example.com').exists()


def test_google_not_configured_is_500(settings):
    settings.GOOGLE_CLIENT_ID = ''
    r = APIClient().get(reverse('google_auth_view'))
    assert r.status_code == 500


def test_google_flow_creates_patient(monkeypatch, settings):
    settings.GOOGLE_CLIENT_ID = 'cid'
    settings.GOOGLE_CLIENT_SECRET = 'secret'
    settings.FRONTEND_URL = 'http://app.test/auth/callback'

    def fake_exchange(code):
        assert code == 'the-code'
        return google_svc.GoogleProfile(email='g.user@gmail.com', name='G User')
    monkeypatch.setattr(google_svc, 'exchange_code', fake_exchange)

    client = APIClient()
    start = client.get(reverse('google_auth_view'))
    assert start.status_code == 302
    consent = urlparse(start['Location'])
    assert consent.netloc == 'accounts.google.com'
    state = parse_qs(consent.query)['state'][0]

    done = client.get(reverse('google_callback_view'), {'code': 'the-code', 'state': state})
    assert done.status_code == 302
    landing = urlparse(done['Location'])
    assert landing.netloc == 'app.test'
    assert 'token' in parse_qs(landing.query)
    user = User.objects.get(email='g.user@gmail.com')
    assert user.role == 'patient'
    assert Patient.objects.filter(user=user).exists()


def test_google_callback_rejects_state_mismatch(settings):
    settings.FRONTEND_URL = 'http://app.test'
    r = APIClient().get(reverse('google_callback_view'), {'code': 'c', 'state': 'forged'})
    assert r.status_code == 302
    assert 'error=invalid_state' in r['Location']


def test_check_connection_is_public():
    r = APIClient().get('/api/system/check-connection')
    assert r.status_code == 200
    assert r.data['data'] == {'status': 'connected'}


def test_healthz():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json()['ok'] is True


def test_expired_token_is_401():
    user = make_user('exp@example.com', 'patient')
    token = AccessToken.for_user(user)
    token.set_exp(lifetime=-timedelta(minutes=1))
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    r = client.get(reverse('me_view'))
    assert r.status_code == 401
    assert r.data['message'] == 'Token expired'


def test_clinic_cannot_hand_out_admin_logins(clinic_owner):
    owner, _ = clinic_owner
    r = client_for(owner).post('/api/clinic/staff', {
        'full_name': 'Eve', 'role': 'admin', 'email': 'eve@clinic.test', 'password': 'secret99',
    }, format='json')
    assert r.status_code == 400
    assert 'role' in r.data['errors']
    assert not User.objects.filter(email='eve@clinic.test').exists()
    assert not ClinicStaff.objects.filter(email='eve@clinic.test').exists()


def _self_registered(email, role):
    r = APIClient().post(reverse('register_view'), {
        'full_name': 'Self Made', 'email': email, 'password': 'secret99', 'role': role,
    }, format='json')
    assert r.status_code == 201
    return User.objects.get(email=email)


@pytest.fixture
def busy_clinic(clinic_owner, doctor, patient):
    """One appointment in the owner's clinic and one elsewhere."""
    _, clinic = clinic_owner
    _, doc = doctor
    _, record = patient
    elsewhere = Clinic.objects.create(clinic_name='Elsewhere Clinic')
    Appointment.objects.create(appointment_id='APT-HOME', patient=record, doctor=doc, clinic=clinic,
                               appointment_date=today(), appointment_time=time(10, 0), earnings=500)
    Appointment.objects.create(appointment_id='APT-AWAY', patient=record, doctor=doc, clinic=elsewhere,
                               appointment_date=today(), appointment_time=time(11, 0), earnings=700)
    return clinic, elsewhere


def test_doctor_without_profile_sees_no_dashboard(busy_clinic):
    user = _self_registered('loose.doc@example.com', 'doctor')
    r = client_for(user).get('/api/dashboard/recent-appointments')
    assert r.status_code == 404


def test_clinic_user_without_clinic_is_refused_analytics(busy_clinic):
    user = _self_registered('loose.clinic@example.com', 'clinic')
    assert client_for(user).get('/api/analytics/stats').status_code == 403
    assert client_for(user).get('/api/dashboard/stats').status_code == 403


def test_clinic_dashboard_is_limited_to_own_clinic(busy_clinic, clinic_owner):
    owner, _ = clinic_owner
    client = client_for(owner)
    recent = client.get('/api/dashboard/recent-appointments').data['data']
    assert [row['appointment_id'] for row in recent] == ['APT-HOME']
    stats = client.get('/api/analytics/stats').data['data']
    assert stats['totalAppointments'] == 1
    assert stats['totalRevenue'] == 500.0


@pytest.mark.parametrize('role', ['lab', 'receptionist', 'pharmacy'])
def test_unlinked_staff_sees_no_lab_orders(role, clinic_owner, patient):
    _, clinic = clinic_owner
    _, record = patient
    LabOrder.objects.create(lab_order_id='LAB-9', patient=record, clinic=clinic, test_name='HIV')
    user = _self_registered(f'{role}@example.com', role)
    client = client_for(user)
    assert client.get('/api/labs').data['data'] == []
    r = client.put('/api/labs/LAB-9', {'status': 'completed', 'result': 'forged'}, format='json')
    assert r.status_code == 404
    assert LabOrder.objects.get(lab_order_id='LAB-9').result == ''


def test_lab_staff_sees_own_clinic_orders(clinic_owner, patient):
    _, clinic = clinic_owner
    _, record = patient
    elsewhere = Clinic.objects.create(clinic_name='Elsewhere Clinic')
    LabOrder.objects.create(lab_order_id='LAB-HOME', patient=record, clinic=clinic, test_name='CBC')
    LabOrder.objects.create(lab_order_id='LAB-AWAY', patient=record, clinic=elsewhere, test_name='CBC')
    tech = make_user('tech@clinic.test', 'lab')
    ClinicStaff.objects.create(clinic=clinic, user=tech, full_name='Tech', role='lab')
    r = client_for(tech).get('/api/labs')
    assert [o['lab_order_id'] for o in r.data['data']] == ['LAB-HOME']
