"""
Integration tests for the clinic API.

Covers the booking flow end to end: appointment creation, booked slot
listing, status transitions, prescriptions completing an appointment,
the patient storefront and the clinic front desk.  Requests go through
DRF's APIClient with ``force_authenticate``.

To run the tests:

```
pytest -q clinic/tests
```
"""
from datetime import time, timedelta

from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from ..models import (
    Appointment,
    AppointmentTransition,
    CartItem,
    Clinic,
    Doctor,
    DoctorClinic,
    Medicine,
    Order,
    Patient,
    Prescription,
    User,
)
from ..services.dates import today


class ClinicAPITests(APITestCase):
    def setUp(self) -> None:
        self.owner = User.objects.create_user(username='owner@x.test', email='owner@x.test',
                                              password='P@ssw0rd1', role='clinic')
        self.clinic = Clinic.objects.create(user=self.owner, clinic_name='Sunrise Clinic')

        self.doctor_user = User.objects.create_user(username='doc@x.test', email='doc@x.test',
                                                    password='P@ssw0rd1', role='doctor')
        self.doctor = Doctor.objects.create(user=self.doctor_user, full_name='Asha Rao', email='doc@x.test',
                                            qualifications='MBBS', verification_status='verified')
        DoctorClinic.objects.create(doctor=self.doctor, clinic=self.clinic)

        self.other_doctor_user = User.objects.create_user(username='doc2@x.test', email='doc2@x.test',
                                                          password='P@ssw0rd1', role='doctor')
        self.other_doctor = Doctor.objects.create(user=self.other_doctor_user, full_name='Vik Menon',
                                                  email='doc2@x.test')

        self.patient_user = User.objects.create_user(username='pat@x.test', email='pat@x.test',
                                                     password='P@ssw0rd1', role='patient')
        self.patient = Patient.objects.create(patient_id='PAT-100', user=self.patient_user,
                                              full_name='Ravi Kumar', email='pat@x.test')
        self.other_patient_user = User.objects.create_user(username='pat2@x.test', email='pat2@x.test',
                                                           password='P@ssw0rd1', role='patient')
        self.other_patient = Patient.objects.create(patient_id='PAT-200', user=self.other_patient_user,
                                                    full_name='Other Person', email='pat2@x.test')

        self.admin = User.objects.create_user(username='admin@x.test', email='admin@x.test',
                                              password='P@ssw0rd1', role='admin')

        self.medicine = Medicine.objects.create(medicine_id='MED-1', name='Paracetamol', mrp=30)

    def authenticate(self, user: User) -> APIClient:
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    def book(self, when=None, at=time(9, 30), status_='scheduled') -> Appointment:
        return Appointment.objects.create(
            appointment_id=f'APT-T-{Appointment.objects.count() + 1}',
            patient=self.patient, doctor=self.doctor, clinic=self.clinic,
            appointment_date=when or today(), appointment_time=at, status=status_,
        )

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------
    def test_patient_books_appointment(self):
        client = self.authenticate(self.patient_user)
        resp = client.post('/api/appointments', {
            'patient_id': 'PAT-100',
            'doctor_id': self.doctor.id,
            'appointment_date': today().isoformat(),
            'appointment_time': '02:15 PM',
            'reason_for_visit': 'Fever',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        data = resp.data['data']
        self.assertRegex(data['appointment_id'], r'^APT-\d{6}-\d{4}-\d{4}$')
        self.assertEqual(data['status'], 'scheduled')
        self.assertEqual(data['consult_duration'], 30)
        self.assertEqual(data['earnings'], 500.0)
        self.assertEqual(data['time_slot'], '02:15 PM')
        self.assertEqual(data['clinic_id'], self.clinic.id)

    def test_patient_cannot_book_for_someone_else(self):
        client = self.authenticate(self.patient_user)
        resp = client.post('/api/appointments', {
            'patient_id': 'PAT-200',
            'doctor_id': self.doctor.id,
            'appointment_date': today().isoformat(),
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Appointment.objects.exists())

    def test_booking_requires_fields(self):
        client = self.authenticate(self.patient_user)
        resp = client.post('/api/appointments', {'patient_id': 'PAT-100'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(resp.data['success'])

    def test_booked_slots_are_twelve_hour_and_skip_cancelled(self):
        day = today() + timedelta(days=2)
        self.book(day, time(9, 0))
        self.book(day, time(14, 5))
        self.book(day, time(16, 0), status_='cancelled')
        self.book(day, None)
        client = self.authenticate(self.patient_user)
        resp = client.get(f'/api/appointments/booked-slots/{self.doctor.id}/{day.isoformat()}')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['bookedSlots'], ['09:00 AM', '02:05 PM'])

    def test_booked_slots_bad_date_is_400(self):
        client = self.authenticate(self.patient_user)
        resp = client.get(f'/api/appointments/booked-slots/{self.doctor.id}/not-a-date')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['message'], 'Invalid input syntax')

    def test_doctor_cannot_read_other_doctors_list(self):
        client = self.authenticate(self.doctor_user)
        resp = client.get('/api/appointments', {'doctor_id': self.other_doctor.id})
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_non_numeric_doctor_id_is_400(self):
        resp = self.authenticate(self.admin).get('/api/appointments', {'doctor_id': 'abc'})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['message'], 'Invalid input syntax')

    def test_appointment_without_clinic_keeps_clinic_object(self):
        apt = self.book()
        Appointment.objects.filter(pk=apt.pk).update(clinic=None)
        resp = self.authenticate(self.admin).get(f'/api/appointments/{apt.appointment_id}')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['clinic'], {'clinic_name': None})

    def test_doctor_list_filters_online(self):
        self.book()
        online = self.book(at=time(11, 0))
        online.mode = 'video'
        online.save()
        client = self.authenticate(self.doctor_user)
        resp = client.get('/api/appointments', {'type': 'online', 'dateFilter': 'today'})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a['appointment_id'] for a in resp.data['data']], [online.appointment_id])

    def test_my_upcoming_appointments(self):
        past = self.book(today() - timedelta(days=3))
        soon = self.book(today() + timedelta(days=1))
        client = self.authenticate(self.patient_user)
        resp = client.get('/api/appointments/my-upcoming-appointments')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        ids = [a['appointment_id'] for a in resp.data['data']]
        self.assertIn(soon.appointment_id, ids)
        self.assertNotIn(past.appointment_id, ids)
        self.assertEqual(resp.data['data'][0]['doctor']['full_name'], 'Asha Rao')

    def test_my_appointments_without_patient_record(self):
        client = self.authenticate(self.admin)
        resp = client.get('/api/appointments/my-appointments')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upcoming_for_patient_returns_count(self):
        self.book(today() + timedelta(days=1))
        client = self.authenticate(self.doctor_user)
        resp = client.get('/api/appointments/upcoming/PAT-100')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['count'], 1)

    def test_start_appointment_by_own_doctor(self):
        apt = self.book()
        resp = self.authenticate(self.doctor_user).post('/api/appointments/start',
                                                       {'appointment_id': apt.appointment_id}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        apt.refresh_from_db()
        self.assertEqual(apt.status, 'in_progress')
        transition = AppointmentTransition.objects.get(appointment=apt)
        self.assertEqual((transition.from_status, transition.to_status), ('scheduled', 'in_progress'))

    def test_start_appointment_of_other_doctor_forbidden(self):
        apt = self.book()
        resp = self.authenticate(self.other_doctor_user).post('/api/appointments/start',
                                                             {'appointment_id': apt.appointment_id}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_patch_accepts_hyphenated(self):
        apt = self.book()
        resp = self.authenticate(self.doctor_user).patch(f'/api/appointments/{apt.appointment_id}/status',
                                                        {'status': 'no-show'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['status'], 'no_show')

    def test_status_patch_rejects_unknown_status(self):
        apt = self.book()
        resp = self.authenticate(self.doctor_user).patch(f'/api/appointments/{apt.appointment_id}/status',
                                                        {'status': 'teleported'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_completed_appointment_is_terminal(self):
        apt = self.book(status_='completed')
        resp = self.authenticate(self.admin).patch(f'/api/appointments/{apt.appointment_id}/status',
                                                  {'status': 'scheduled'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        apt.refresh_from_db()
        self.assertEqual(apt.status, 'completed')

    def test_patient_cannot_patch_status(self):
        apt = self.book()
        resp = self.authenticate(self.patient_user).patch(f'/api/appointments/{apt.appointment_id}/status',
                                                         {'status': 'cancelled'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_reschedule_resets_to_scheduled(self):
        apt = self.book(status_='cancelled')
        new_day = today() + timedelta(days=5)
        resp = self.authenticate(self.admin).put('/api/appointments/reschedule', {
            'appointment_id': apt.appointment_id,
            'appointment_date': new_day.isoformat(),
            'appointment_time': '10:00',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        apt.refresh_from_db()
        self.assertEqual(apt.status, 'scheduled')
        self.assertEqual(apt.appointment_date, new_day)
        self.assertEqual(apt.appointment_time, time(10, 0))

    def test_unknown_appointment_is_404(self):
        resp = self.authenticate(self.admin).get('/api/appointments/APT-NOPE')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    # ------------------------------------------------------------------
    # Prescriptions
    # ------------------------------------------------------------------
    def test_doctor_prescription_completes_appointment(self):
        apt = self.book()
        resp = self.authenticate(self.doctor_user).post('/api/doctors/prescriptions', {
            'appointment_id': apt.appointment_id,
            'diagnosis': 'Viral fever',
            'medicines': [{'medicine_name': 'Paracetamol', 'dosage': '500mg', 'frequency': 'TID'}],
            'lab_tests': ['CBC'],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['data']['medicines'][0]['medicine_name'], 'Paracetamol')
        self.assertEqual(resp.data['data']['lab_tests'], [{'test_name': 'CBC'}])
        apt.refresh_from_db()
        self.assertEqual(apt.status, 'completed')

    def test_doctor_prescription_for_foreign_appointment_forbidden(self):
        apt = self.book()
        resp = self.authenticate(self.other_doctor_user).post('/api/doctors/prescriptions', {
            'appointment_id': apt.appointment_id, 'diagnosis': 'x',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Prescription.objects.exists())

    def test_bad_medicine_line_rolls_back_prescription(self):
        resp = self.authenticate(self.doctor_user).post('/api/prescriptions', {
            'patient_id': 'PAT-100',
            'diagnosis': 'Migraine',
            'medicines': [{'medicine_name': 'Sumatriptan'}, {'dosage': '5mg'}],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Prescription.objects.exists())

    def test_prescription_requires_diagnosis(self):
        resp = self.authenticate(self.doctor_user).post('/api/prescriptions', {'patient_id': 'PAT-100'},
                                                       format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_prescription_accepts_plain_medicine_names(self):
        resp = self.authenticate(self.doctor_user).post('/api/prescriptions', {
            'patient_id': 'PAT-100', 'diagnosis': 'Fever', 'medicines': ['Paracetamol'],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['data']['medicines'][0]['medicine_name'], 'Paracetamol')

    def test_prescription_rejects_malformed_medicine_line(self):
        resp = self.authenticate(self.doctor_user).post('/api/prescriptions', {
            'patient_id': 'PAT-100', 'diagnosis': 'Fever', 'medicines': [42],
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Prescription.objects.exists())

    def test_prescription_with_non_numeric_doctor_is_400(self):
        resp = self.authenticate(self.admin).post('/api/prescriptions', {
            'patient_id': 'PAT-100', 'diagnosis': 'Fever', 'doctor_id': 'abc',
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data['message'], 'Invalid input syntax')

    def test_patient_reads_only_own_prescriptions(self):
        self.authenticate(self.doctor_user).post('/api/prescriptions', {
            'patient_id': 'PAT-100', 'diagnosis': 'Cold',
        }, format='json')
        own = self.authenticate(self.patient_user).get('/api/prescriptions/patient/PAT-100')
        self.assertEqual(own.status_code, status.HTTP_200_OK)
        self.assertEqual(len(own.data['data']), 1)
        foreign = self.authenticate(self.other_patient_user).get('/api/prescriptions/patient/PAT-100')
        self.assertEqual(foreign.status_code, status.HTTP_403_FORBIDDEN)

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------
    def test_duplicate_patient_id_rejected(self):
        client = self.authenticate(self.admin)
        resp = client.post('/api/patients', {'patient_id': 'PAT-100', 'full_name': 'Dup', 'phone': '1'},
                           format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patient_list_is_paginated(self):
        resp = self.authenticate(self.admin).get('/api/patients', {'page': 1, 'limit': 1})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data['data']['patients']), 1)
        self.assertEqual(resp.data['data']['pagination']['total'], 2)
        self.assertEqual(resp.data['data']['pagination']['pages'], 2)

    def test_doctor_cannot_delete_patients(self):
        resp = self.authenticate(self.doctor_user).delete('/api/patients/PAT-200')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Patient.objects.filter(patient_id='PAT-200').exists())

    # ------------------------------------------------------------------
    # Storefront
    # ------------------------------------------------------------------
    def test_cart_increments_existing_line(self):
        client = self.authenticate(self.patient_user)
        client.post('/api/cart', {'medicine_id': 'MED-1', 'quantity': 2}, format='json')
        resp = client.post('/api/cart', {'medicine_id': 'MED-1'}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(CartItem.objects.get(patient=self.patient).quantity, 3)

    def test_foreign_cart_item_is_404(self):
        item = CartItem.objects.create(patient=self.other_patient, medicine=self.medicine, quantity=1)
        client = self.authenticate(self.patient_user)
        self.assertEqual(client.put(f'/api/cart/{item.id}', {'quantity': 4}, format='json').status_code,
                         status.HTTP_404_NOT_FOUND)
        self.assertEqual(client.delete(f'/api/cart/{item.id}').status_code, status.HTTP_404_NOT_FOUND)
        item.refresh_from_db()
        self.assertEqual(item.quantity, 1)

    def test_order_from_cart_clears_cart(self):
        CartItem.objects.create(patient=self.patient, medicine=self.medicine, quantity=2)
        resp = self.authenticate(self.patient_user).post('/api/orders', {'delivery_address': 'Home'},
                                                        format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['data']['total_amount'], 60.0)
        self.assertFalse(CartItem.objects.filter(patient=self.patient).exists())

    def test_order_items_may_be_medicine_ids(self):
        resp = self.authenticate(self.patient_user).post('/api/orders', {'items': ['MED-1', 'MED-1']},
                                                        format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data['data']['total_amount'], 60.0)

    def test_order_rejects_malformed_item(self):
        resp = self.authenticate(self.patient_user).post('/api/orders', {'items': [7]}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Order.objects.exists())

    def test_cancel_foreign_order_forbidden(self):
        order = Order.objects.create(patient=self.other_patient, total_amount=10)
        resp = self.authenticate(self.patient_user).patch(f'/api/orders/{order.id}/cancel')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancel_only_pending_orders(self):
        order = Order.objects.create(patient=self.patient, total_amount=10, status='shipped')
        resp = self.authenticate(self.patient_user).patch(f'/api/orders/{order.id}/cancel')
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        order.status = 'pending'
        order.save()
        resp = self.authenticate(self.patient_user).patch(f'/api/orders/{order.id}/cancel')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['status'], 'cancelled')

    def test_bookmark_toggles(self):
        client = self.authenticate(self.patient_user)
        first = client.post('/api/bookmarks', {'medicine_id': 'MED-1'}, format='json')
        second = client.post('/api/bookmarks', {'medicine_id': 'MED-1'}, format='json')
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(second.status_code, status.HTTP_200_OK)

    # ------------------------------------------------------------------
    # Clinic front desk
    # ------------------------------------------------------------------
    def test_clinic_cannot_book_unlinked_doctor(self):
        resp = self.authenticate(self.owner).post('/api/clinic/appointments', {
            'patient_id': 'PAT-100',
            'doctor_id': self.other_doctor.id,
            'appointment_date': today().isoformat(),
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_clinic_queue_lists_todays_open_appointments(self):
        waiting = self.book(at=time(10, 0))
        self.book(at=time(9, 0), status_='completed')
        resp = self.authenticate(self.owner).get('/api/clinic/queue')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([a['appointment_id'] for a in resp.data['data']], [waiting.appointment_id])

    def test_patient_cannot_reach_clinic_queue(self):
        resp = self.authenticate(self.patient_user).get('/api/clinic/queue')
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(resp.data['message'], 'Role patient is not authorized to access this resource')

    def test_linking_doctor_is_idempotent(self):
        client = self.authenticate(self.owner)
        for _ in range(2):
            resp = client.post('/api/clinic/doctors', {'doctor_id': self.other_doctor.id}, format='json')
            self.assertIn(resp.status_code, (status.HTTP_200_OK, status.HTTP_201_CREATED))
        self.assertEqual(DoctorClinic.objects.filter(clinic=self.clinic, doctor=self.other_doctor).count(), 1)

    def test_invoice_status_follows_payment(self):
        client = self.authenticate(self.owner)
        resp = client.post('/api/clinic/billing', {
            'patient_id': 'PAT-100',
            'items': [{'description': 'Consultation', 'rate': 400, 'quantity': 1},
                      {'description': 'Dressing', 'rate': 50, 'quantity': 2}],
            'paid_amount': 100,
        }, format='json')
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        invoice = resp.data['data']
        self.assertEqual(invoice['total_amount'], 500.0)
        self.assertEqual(invoice['status'], 'partial')
        resp = client.patch(f"/api/clinic/billing/{invoice['invoice_id']}", {'paid_amount': 400}, format='json')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data['data']['status'], 'paid')
