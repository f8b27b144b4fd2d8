from django.core.management.base import BaseCommand
from django.db import transaction

from clinic.models import Clinic, ClinicStaff, Doctor, DoctorClinic, Medicine, Patient, User
from clinic.services.doctors import invalidate_doctor_cache

DEMO_PASSWORD = "demo12345"

DEMO_USERS = [
    ("admin@demo.local", "Demo Admin", "admin"),
    ("clinic@demo.local", "Demo Clinic Owner", "clinic"),
    ("doctor@demo.local", "Asha Rao", "doctor"),
    ("patient@demo.local", "Ravi Kumar", "patient"),
    ("reception@demo.local", "Meena Iyer", "receptionist"),
    ("nurse@demo.local", "Leela Das", "nurse"),
    ("lab@demo.local", "Demo Lab", "lab"),
    ("pharmacy@demo.local", "Demo Pharmacy", "pharmacy"),
]

CATALOGUE = [
    ("MED-SYS-001", "Paracetamol 500mg", "Pain Relief", "Cipla", 35),
    ("MED-SYS-002", "Cetirizine 10mg", "Allergy", "Dr. Reddy's", 28),
    ("MED-SYS-003", "Amoxicillin 250mg", "Antibiotics", "Sun Pharma", 90),
    ("MED-SYS-004", "Vitamin D3 60K", "Supplements", "Mankind", 120),
    ("MED-SYS-005", "ORS Sachet", "General", "FDC", 20),
]


class Command(BaseCommand):
    help = f"Ensure demo users, a clinic, a doctor, a patient and a medicine catalogue exist (password={DEMO_PASSWORD})."

    @transaction.atomic
    def handle(self, *args, **opts):
        users = {}
        for email, full_name, role in DEMO_USERS:
            u, created = User.objects.get_or_create(
                email=email,
                defaults={"username": email, "full_name": full_name, "role": role, "is_active": True},
            )
            if not created:
                u.role = role
                u.is_active = True
            if role == "admin":
                u.is_staff = u.is_superuser = True
            u.set_password(DEMO_PASSWORD)
            u.save()
            users[role] = u
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role})"))

        clinic, _ = Clinic.objects.update_or_create(
            user=users["clinic"],
            defaults={"clinic_name": "Demo Family Clinic", "city": "Bengaluru", "email": "clinic@demo.local",
                      "verification_status": "verified"},
        )
        doctor, _ = Doctor.objects.update_or_create(
            user=users["doctor"],
            defaults={"full_name": "Asha Rao", "email": "doctor@demo.local", "qualifications": "MBBS, MD",
                      "specializations": ["General Physician"], "consultation_modes": ["in-person", "video"],
                      "verification_status": "verified"},
        )
        DoctorClinic.objects.get_or_create(doctor=doctor, clinic=clinic)
        Patient.objects.update_or_create(
            patient_id="PAT-DEMO-0001",
            defaults={"user": users["patient"], "full_name": "Ravi Kumar", "email": "patient@demo.local",
                      "phone": "9000000001", "doctor": doctor},
        )
        for role in ("receptionist", "nurse", "lab", "pharmacy"):
            ClinicStaff.objects.update_or_create(
                user=users[role],
                defaults={"clinic": clinic, "full_name": users[role].full_name, "role": role,
                          "email": users[role].email},
            )
        for medicine_id, name, category, manufacturer, mrp in CATALOGUE:
            Medicine.objects.update_or_create(
                medicine_id=medicine_id,
                defaults={"name": name, "category": category, "manufacturer": manufacturer,
                          "mrp": mrp, "stock_quantity": 100},
            )
        invalidate_doctor_cache()
        self.stdout.write(self.style.SUCCESS("Demo data ensured."))
