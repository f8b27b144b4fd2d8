"""
Database models for the clinic backend.

The schema covers the people in the system (users, patients, doctors,
clinics and their staff), the scheduling records (appointments and
their status history), clinical output (prescriptions, lab orders,
documents) and the small pharmacy storefront (medicines, cart, orders,
bookmarks).  Business identifiers such as ``APT-...`` and ``RX-...`` are
string primary keys generated by :mod:`clinic.services.ids` so that
existing frontend links keep working.
"""
from __future__ import annotations

import os
import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone


class User(AbstractUser):
    """Login account.

    ``username`` always mirrors ``email``; authentication is by email.
    The role decides which profile row (patient, doctor, clinic or staff)
    is attached to the request by :mod:`clinic.authentication`.
    """
    ROLE_CHOICES = [
        ('patient', 'Patient'),
        ('doctor', 'Doctor'),
        ('clinic', 'Clinic'),
        ('admin', 'Administrator'),
        ('receptionist', 'Receptionist'),
        ('nurse', 'Nurse'),
        ('lab', 'Lab'),
        ('pharmacy', 'Pharmacy'),
    ]
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='patient', db_index=True)
    full_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(unique=True)
    mobile_number = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
            self.username = self.email
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"


VERIFICATION_CHOICES = [
    ('pending', 'Pending'),
    ('verified', 'Verified'),
    ('rejected', 'Rejected'),
]


class Clinic(models.Model):
    """A registered clinic; ``user`` is the clinic owner's login."""
    user = models.OneToOneField(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='clinic')
    clinic_name = models.CharField(max_length=255)
    establishment_year = models.PositiveIntegerField(null=True, blank=True)
    tagline = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    address = models.TextField(blank=True)
    pin_code = models.CharField(max_length=10, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    mobile = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    website = models.CharField(max_length=255, blank=True)
    medical_council_reg_no = models.CharField(max_length=100, blank=True)
    bank_account_name = models.CharField(max_length=255, blank=True)
    bank_account_number = models.CharField(max_length=50, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    pan_number = models.CharField(max_length=20, blank=True)
    gstin = models.CharField(max_length=20, blank=True)
    services = models.JSONField(default=list, blank=True)
    facilities = models.JSONField(default=list, blank=True)
    payment_modes = models.JSONField(default=list, blank=True)
    booking_modes = models.JSONField(default=list, blank=True)
    verification_status = models.CharField(max_length=20, choices=VERIFICATION_CHOICES, default='pending', db_index=True)
    terms_accepted = models.BooleanField(default=False)
    declaration_accepted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.clinic_name


class Doctor(models.Model):
    """Doctor profile, optionally linked to a login and to several clinics."""
    user = models.OneToOneField(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor')
    full_name = models.CharField(max_length=255)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    mobile = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True, db_index=True)
    medical_council_reg_no = models.CharField(max_length=100, blank=True)
    medical_council_name = models.CharField(max_length=255, blank=True)
    registration_year = models.PositiveIntegerField(null=True, blank=True)
    qualifications = models.CharField(max_length=255, blank=True)
    university = models.CharField(max_length=255, blank=True)
    graduation_year = models.PositiveIntegerField(null=True, blank=True)
    experience_years = models.PositiveIntegerField(null=True, blank=True)
    bio = models.TextField(blank=True)
    profile_photo = models.CharField(max_length=512, blank=True)
    specializations = models.JSONField(default=list, blank=True)
    languages = models.JSONField(default=list, blank=True)
    consultation_modes = models.JSONField(default=list, blank=True)
    bank_account_name = models.CharField(max_length=255, blank=True)
    bank_account_number = models.CharField(max_length=50, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    pan_number = models.CharField(max_length=20, blank=True)
    gstin = models.CharField(max_length=20, blank=True)
    verification_status = models.CharField(max_length=20, choices=VERIFICATION_CHOICES, default='pending', db_index=True)
    clinics = models.ManyToManyField(Clinic, through='DoctorClinic', related_name='doctors', blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Dr. {self.full_name}"


class DoctorClinic(models.Model):
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='clinic_links')
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='doctor_links')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('doctor', 'clinic')]

    def __str__(self) -> str:
        return f"{self.doctor_id}@{self.clinic_id}"


class VerificationDetail(models.Model):
    """Financial data submitted with a doctor or clinic registration."""
    TYPE_CHOICES = [('DOCTOR', 'Doctor'), ('CLINIC', 'Clinic')]
    verification_type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.CASCADE, related_name='verifications')
    clinic = models.ForeignKey(Clinic, null=True, blank=True, on_delete=models.CASCADE, related_name='verifications')
    pan_number = models.CharField(max_length=20, blank=True)
    gstin = models.CharField(max_length=20, blank=True)
    bank_account_name = models.CharField(max_length=255, blank=True)
    bank_account_number = models.CharField(max_length=50, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.verification_type}:{self.doctor_id or self.clinic_id}"


class ClinicStaff(models.Model):
    ROLE_CHOICES = [
        ('receptionist', 'Receptionist'),
        ('nurse', 'Nurse'),
        ('lab', 'Lab'),
        ('pharmacy', 'Pharmacy'),
        ('admin', 'Administrator'),
    ]
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='staff')
    user = models.OneToOneField(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff_profile')
    full_name = models.CharField(max_length=255)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='receptionist')
    email = models.EmailField(blank=True)
    mobile = models.CharField(max_length=20, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.full_name} ({self.role})"


class Patient(models.Model):
    """Patient record.  A patient may exist without a login (added by a clinic)."""
    patient_id = models.CharField(max_length=50, primary_key=True)
    user = models.OneToOneField(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient')
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients')
    full_name = models.CharField(max_length=255)
    email = models.EmailField(blank=True, db_index=True)
    phone = models.CharField(max_length=20, blank=True, db_index=True)
    age = models.PositiveIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    blood_group = models.CharField(max_length=10, blank=True)
    address = models.TextField(blank=True)
    emergency_contact = models.CharField(max_length=50, blank=True)
    profile_photo = models.CharField(max_length=512, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.full_name} ({self.patient_id})"


class PatientAllergy(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='allergies')
    allergy_name = models.CharField(max_length=255)
    severity = models.CharField(max_length=20, blank=True)

    def __str__(self) -> str:
        return self.allergy_name


class PatientCondition(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='conditions')
    condition_name = models.CharField(max_length=255)
    is_chronic = models.BooleanField(default=True)

    def __str__(self) -> str:
        return self.condition_name


class Appointment(models.Model):
    STATUS_SCHEDULED = 'scheduled'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_NO_SHOW = 'no_show'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_NO_SHOW, 'No show'),
    ]
    MODE_CHOICES = [
        ('in-person', 'In person'),
        ('video', 'Video'),
        ('online', 'Online'),
    ]
    appointment_id = models.CharField(max_length=50, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='appointments')
    clinic = models.ForeignKey(Clinic, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments')
    appointment_date = models.DateField(db_index=True)
    appointment_time = models.TimeField(null=True, blank=True)
    appointment_type = models.CharField(max_length=50, blank=True)
    mode = models.CharField(max_length=20, choices=MODE_CHOICES, default='in-person')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED, db_index=True)
    consult_duration = models.PositiveIntegerField(default=30)
    earnings = models.DecimalField(max_digits=10, decimal_places=2, default=500)
    reason_for_visit = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['doctor', 'appointment_date'], name='appt_doctor_date_idx'),
            models.Index(fields=['patient', 'appointment_date'], name='appt_patient_date_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.appointment_id} {self.appointment_date} {self.status}"


class AppointmentTransition(models.Model):
    """Records a status change on an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=20, null=True, blank=True)
    to_status = models.CharField(max_length=20)
    operator = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions')
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} -> {self.to_status}"


class Prescription(models.Model):
    prescription_id = models.CharField(max_length=50, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='prescriptions')
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions')
    appointment = models.ForeignKey(Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions')
    clinic = models.ForeignKey(Clinic, null=True, blank=True, on_delete=models.SET_NULL, related_name='prescriptions')
    diagnosis = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    follow_up_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    def __str__(self) -> str:
        return self.prescription_id


class PrescriptionMedicine(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='medicines')
    medicine_name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=100, blank=True)
    frequency = models.CharField(max_length=100, blank=True)
    duration = models.CharField(max_length=100, blank=True)

    def __str__(self) -> str:
        return self.medicine_name


class PrescriptionLabTest(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name='lab_tests')
    test_name = models.CharField(max_length=255)

    def __str__(self) -> str:
        return self.test_name


class LabTestType(models.Model):
    clinic = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name='lab_test_types')
    test_name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    tat_hours = models.PositiveIntegerField(default=24)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.test_name


class LabOrder(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('sample_collected', 'Sample collected'),
        ('in_progress', 'In progress'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
    ]
    PRIORITY_CHOICES = [('Normal', 'Normal'), ('Urgent', 'Urgent'), ('STAT', 'STAT')]
    lab_order_id = models.CharField(max_length=50, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='lab_orders')
    doctor = models.ForeignKey(Doctor, null=True, blank=True, on_delete=models.SET_NULL, related_name='lab_orders')
    clinic = models.ForeignKey(Clinic, null=True, blank=True, on_delete=models.SET_NULL, related_name='lab_orders')
    test_type = models.ForeignKey(LabTestType, null=True, blank=True, on_delete=models.SET_NULL, related_name='orders')
    test_name = models.CharField(max_length=255)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='Normal')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    notes = models.TextField(blank=True)
    result = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    order_date = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.lab_order_id} {self.test_name}"


class Medicine(models.Model):
    """Medicine catalogue entry.  ``clinic`` null means a system-wide item."""
    medicine_id = models.CharField(max_length=50, primary_key=True)
    clinic = models.ForeignKey(Clinic, null=True, blank=True, on_delete=models.CASCADE, related_name='medicines')
    name = models.CharField(max_length=255, db_index=True)
    category = models.CharField(max_length=100, blank=True, db_index=True)
    manufacturer = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    batch_number = models.CharField(max_length=100, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    stock_quantity = models.PositiveIntegerField(default=0)
    min_stock_level = models.PositiveIntegerField(default=10)
    purchase_price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    mrp = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    storage_location = models.CharField(max_length=100, blank=True)
    requires_prescription = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class CartItem(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='cart_items')
    medicine = models.ForeignKey(Medicine, on_delete=models.CASCADE, related_name='cart_items')
    quantity = models.PositiveIntegerField(default=1)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('patient', 'medicine')]

    def __str__(self) -> str:
        return f"{self.patient_id}: {self.medicine_id} x{self.quantity}"


class Bookmark(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='bookmarks')
    medicine = models.ForeignKey(Medicine, on_delete=models.CASCADE, related_name='bookmarks')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('patient', 'medicine')]

    def __str__(self) -> str:
        return f"{self.patient_id} * {self.medicine_id}"


class Order(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('confirmed', 'Confirmed'),
        ('shipped', 'Shipped'),
        ('delivered', 'Delivered'),
        ('cancelled', 'Cancelled'),
    ]
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='orders')
    order_type = models.CharField(max_length=20, default='medicine')
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    delivery_address = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"Order #{self.id} ({self.status})"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    medicine = models.ForeignKey(Medicine, null=True, blank=True, on_delete=models.SET_NULL, related_name='order_items')
    item_name = models.CharField(max_length=255, blank=True)
    quantity = models.PositiveIntegerField(default=1)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    def __str__(self) -> str:
        return f"{self.item_name} x{self.quantity}"


class Invoice(models.Model):
    STATUS_CHOICES = [('pending', 'Pending'), ('partial', 'Partial'), ('paid', 'Paid')]
    invoice_id = models.CharField(max_length=50, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='invoices')
    appointment = models.ForeignKey(Appointment, null=True, blank=True, on_delete=models.SET_NULL, related_name='invoices')
    clinic = models.ForeignKey(Clinic, null=True, blank=True, on_delete=models.SET_NULL, related_name='invoices')
    total_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending', db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.invoice_id} ({self.status})"


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='items')
    description = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(default=1)
    rate = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    def __str__(self) -> str:
        return self.description


class InvoicePayment(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    payment_method = models.CharField(max_length=50, default='Cash')
    paid_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.invoice_id} +{self.amount}"


def _document_upload(instance, filename: str) -> str:
    ext = os.path.splitext(filename)[1]
    return f"documents/{timezone.now().strftime('%Y/%m')}/{uuid.uuid4().hex}{ext}"


class PatientDocument(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='documents')
    document_type = models.CharField(max_length=50, default='Other')
    file = models.FileField(upload_to=_document_upload, max_length=512)
    file_name = models.CharField(max_length=255, blank=True)
    content_type = models.CharField(max_length=128, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.document_type}: {self.file_name}"


class MedicineReminder(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='reminders')
    medicine_name = models.CharField(max_length=255)
    dosage = models.CharField(max_length=100, blank=True)
    reminder_time = models.TimeField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.medicine_name} @ {self.reminder_time}"


class Device(models.Model):
    """A monitoring device registered by a doctor."""
    doctor = models.ForeignKey(Doctor, on_delete=models.CASCADE, related_name='devices')
    patient = models.ForeignKey(Patient, null=True, blank=True, on_delete=models.SET_NULL, related_name='devices')
    device_name = models.CharField(max_length=255)
    device_type = models.CharField(max_length=100)
    connection_type = models.CharField(max_length=50, blank=True)
    port = models.CharField(max_length=50, blank=True)
    ip_address = models.CharField(max_length=50, blank=True)
    status = models.CharField(max_length=20, default='online')
    battery_level = models.PositiveIntegerField(default=100)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.device_name} ({self.device_type})"


class DeviceReading(models.Model):
    device = models.ForeignKey(Device, on_delete=models.CASCADE, related_name='readings')
    reading_type = models.CharField(max_length=50)
    value = models.CharField(max_length=100)
    unit = models.CharField(max_length=20, blank=True)
    recorded_at = models.DateTimeField(default=timezone.now, db_index=True)

    def __str__(self) -> str:
        return f"{self.device_id} {self.reading_type}={self.value}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
