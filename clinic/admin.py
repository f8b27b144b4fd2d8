"""
Django admin registrations for the clinic models.

Lets superusers inspect and correct records through ``/admin/``; the
heavier child tables (line items, readings, transitions) are reached
through their parents.
"""
from django.contrib import admin

from .models import (
    Appointment,
    AppointmentTransition,
    AuditEvent,
    Clinic,
    ClinicStaff,
    Doctor,
    Invoice,
    LabOrder,
    LabTestType,
    Medicine,
    Order,
    Patient,
    Prescription,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'full_name', 'role', 'is_active', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('email', 'full_name')


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = ('id', 'clinic_name', 'city', 'verification_status', 'created_at')
    list_filter = ('verification_status',)
    search_fields = ('clinic_name', 'email', 'city')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'email', 'verification_status')
    list_filter = ('verification_status',)
    search_fields = ('full_name', 'email', 'medical_council_reg_no')


@admin.register(ClinicStaff)
class ClinicStaffAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'clinic', 'role', 'is_active')
    list_filter = ('role', 'is_active')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_id', 'full_name', 'email', 'phone', 'doctor')
    search_fields = ('patient_id', 'full_name', 'email', 'phone')


class AppointmentTransitionInline(admin.TabularInline):
    model = AppointmentTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp', 'reason')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('appointment_id', 'patient', 'doctor', 'appointment_date', 'appointment_time', 'status')
    list_filter = ('status', 'mode', 'appointment_date')
    search_fields = ('appointment_id', 'patient__full_name', 'doctor__full_name')
    inlines = [AppointmentTransitionInline]


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('prescription_id', 'patient', 'doctor', 'created_at')
    search_fields = ('prescription_id', 'patient__full_name')


admin.site.register(LabTestType)


@admin.register(LabOrder)
class LabOrderAdmin(admin.ModelAdmin):
    list_display = ('lab_order_id', 'test_name', 'patient', 'status', 'priority')
    list_filter = ('status', 'priority')


@admin.register(Medicine)
class MedicineAdmin(admin.ModelAdmin):
    list_display = ('medicine_id', 'name', 'category', 'clinic', 'stock_quantity', 'mrp')
    list_filter = ('category',)
    search_fields = ('name', 'manufacturer')


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'order_type', 'total_amount', 'status', 'created_at')
    list_filter = ('status', 'order_type')


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_id', 'patient', 'clinic', 'total_amount', 'status')
    list_filter = ('status',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action',)
