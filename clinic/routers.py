"""
URL mappings for the clinic API.

Paths mirror the frontend's service layer, so trailing slashes are
omitted.  Literal segments are registered before the ``<id>`` catch-alls
that share their prefix.
"""
from django.urls import include, path

from .auth_views import (
    google_auth_view,
    google_callback_view,
    jwt_logout_view,
    jwt_refresh_view,
    login_view,
    me_view,
    register_clinic_view,
    register_doctor_view,
    register_view,
    verify_otp_view,
)
from .views import (
    analytics,
    appointments,
    clinic_ops,
    clinics,
    devices,
    doctors,
    health,
    labs,
    medicines,
    patients,
    prescriptions,
    records,
    store,
)

auth_urls = [
    path('register', register_view, name='register_view'),
    path('register/doctor', register_doctor_view, name='register_doctor_view'),
    path('register/clinic', register_clinic_view, name='register_clinic_view'),
    path('login', login_view, name='login_view'),
    path('google', google_auth_view, name='google_auth_view'),
    path('google/callback', google_callback_view, name='google_callback_view'),
    path('me', me_view, name='me_view'),
    path('verify-otp', verify_otp_view, name='verify_otp_view'),
    path('refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('logout', jwt_logout_view, name='jwt_logout_view'),
]

appointment_urls = [
    path('', appointments.appointments),
    path('start', appointments.start_appointment),
    path('status', appointments.update_status_from_body),
    path('reschedule', appointments.reschedule_appointment),
    path('my-appointments', appointments.my_appointments),
    path('my-upcoming-appointments', appointments.my_upcoming_appointments),
    path('patient/<str:patient_id>', appointments.patient_appointments),
    path('upcoming/<str:patient_id>', appointments.upcoming_appointments),
    path('booked-slots/<int:doctor_id>/<str:date>', appointments.booked_slots_view),
    path('<str:appointment_id>', appointments.appointment_detail),
    path('<str:appointment_id>/status', appointments.appointment_status),
]

patient_urls = [
    path('', patients.patients),
    path('profile', patients.my_profile),
    path('profile/photo', patients.upload_profile_photo),
    path('<str:patient_id>', patients.patient_detail),
]

doctor_urls = [
    path('', doctors.doctor_list),
    path('patients', doctors.doctor_patients),
    path('patients/<str:patient_id>', doctors.delete_doctor_patient),
    path('appointments', doctors.doctor_appointments),
    path('appointments/<str:appointment_id>/status', doctors.doctor_appointment_status),
    path('prescriptions', doctors.doctor_prescriptions),
    path('stats', doctors.doctor_stats),
    path('profile', doctors.doctor_profile),
]

clinic_urls = [
    path('patients', clinic_ops.clinic_patients),
    path('patients/today', clinic_ops.today_patients),
    path('patients/upcoming', clinic_ops.upcoming_patients),
    path('patients/completed', clinic_ops.completed_patients),
    path('appointments', clinic_ops.clinic_appointments),
    path('appointments/<str:appointment_id>', clinic_ops.clinic_appointment_detail),
    path('queue', clinic_ops.clinic_queue),
    path('doctors', clinic_ops.clinic_doctors),
    path('doctors/<int:doctor_id>', clinic_ops.clinic_doctor_detail),
    path('staff', clinic_ops.clinic_staff),
    path('staff/<int:staff_id>', clinic_ops.clinic_staff_detail),
    path('prescriptions', clinic_ops.clinic_prescriptions),
    path('labs', clinic_ops.clinic_labs),
    path('lab-orders', clinic_ops.clinic_lab_orders),
    path('billing', clinic_ops.clinic_billing),
    path('billing/<str:invoice_id>', clinic_ops.clinic_invoice_detail),
    path('medicines', clinic_ops.clinic_medicines),
]

device_urls = [
    path('', devices.devices),
    path('readings', devices.create_reading),
    path('readings/<int:device_id>', devices.device_readings),
    path('<int:device_id>', devices.device_detail),
]

urlpatterns = [
    path('api/auth/', include(auth_urls)),
    path('api/appointments', appointments.appointments),
    path('api/appointments/', include(appointment_urls)),
    path('api/patients', patients.patients),
    path('api/patients/', include(patient_urls)),
    path('api/doctors', doctors.doctor_list),
    path('api/doctors/', include(doctor_urls)),
    path('api/clinics', clinics.clinics),
    path('api/clinics/<int:clinic_id>', clinics.clinic_detail),
    path('api/clinic/', include(clinic_urls)),

    path('api/prescriptions', prescriptions.prescriptions),
    path('api/prescriptions/patient/<str:patient_id>', prescriptions.patient_prescriptions),
    path('api/prescriptions/<str:prescription_id>', prescriptions.prescription_detail),

    path('api/labs', labs.lab_orders),
    path('api/labs/<str:lab_order_id>', labs.lab_order_detail),

    path('api/medicines', medicines.medicines),
    path('api/medicines/<str:medicine_id>', medicines.medicine_detail),

    path('api/cart', store.cart),
    path('api/cart/<int:item_id>', store.cart_item),
    path('api/orders', store.orders),
    path('api/orders/<int:order_id>', store.order_detail),
    path('api/orders/<int:order_id>/cancel', store.cancel_order),
    path('api/bookmarks', store.bookmarks),

    path('api/documents', records.documents),
    path('api/documents/upload', records.upload_document),
    path('api/documents/<int:document_id>', records.document_detail),
    path('api/reminders', records.reminders),
    path('api/reminders/<int:reminder_id>', records.reminder_detail),

    path('api/devices', devices.devices),
    path('api/devices/', include(device_urls)),

    path('api/analytics/stats', analytics.analytics_stats),
    path('api/analytics/charts', analytics.analytics_charts),
    path('api/dashboard/stats', analytics.dashboard_stats),
    path('api/dashboard/appointments', analytics.dashboard_appointments),
    path('api/dashboard/revenue', analytics.dashboard_revenue),
    path('api/dashboard/recent-appointments', analytics.dashboard_recent_appointments),

    path('api/system/check-connection', health.check_connection),
    path('healthz', health.healthz),
]
