import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from clinic.models import Clinic, Doctor, DoctorClinic, Medicine, Patient, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttling counters and cached doctor lists live in the default cache
    cache.clear()
    yield
    cache.clear()


def make_user(email, role, password='P@ssw0rd1', **extra):
    return User.objects.create_user(username=email, email=email, password=password, role=role, **extra)


def client_for(user=None):
    client = APIClient()
    if user is not None:
        client.force_authenticate(user=user)
    return client


@pytest.fixture
def clinic_owner(db):
    user = make_user('owner@clinic.test', 'clinic', full_name='Clinic Owner')
    clinic = Clinic.objects.create(user=user, clinic_name='Sunrise Clinic', verification_status='verified')
    return user, clinic


@pytest.fixture
def doctor(db, clinic_owner):
    _, clinic = clinic_owner
    user = make_user('doc@clinic.test', 'doctor', full_name='Asha Rao')
    doc = Doctor.objects.create(user=user, full_name='Asha Rao', email=user.email, qualifications='MBBS',
                                specializations=['Cardiology'], verification_status='verified')
    DoctorClinic.objects.create(doctor=doc, clinic=clinic)
    return user, doc


@pytest.fixture
def patient(db):
    user = make_user('pat@clinic.test', 'patient', full_name='Ravi Kumar')
    record = Patient.objects.create(patient_id='PAT-1', user=user, full_name='Ravi Kumar', email=user.email)
    return user, record


@pytest.fixture
def other_patient(db):
    user = make_user('other@clinic.test', 'patient', full_name='Other Person')
    record = Patient.objects.create(patient_id='PAT-2', user=user, full_name='Other Person', email=user.email)
    return user, record


@pytest.fixture
def medicine(db):
    return Medicine.objects.create(medicine_id='MED-1', name='Paracetamol', category='Pain Relief', mrp=30)
