from rest_framework import serializers

from clinic.models import Clinic, ClinicStaff, Doctor, LabOrder, LabTestType
from clinic.sanitize import clean_text


class ClinicSerializer(serializers.ModelSerializer):
    class Meta:
        model = Clinic
        fields = [
            'id', 'clinic_name', 'establishment_year', 'tagline', 'description', 'address', 'pin_code', 'city',
            'state', 'mobile', 'email', 'website', 'medical_council_reg_no', 'services', 'facilities',
            'payment_modes', 'booking_modes', 'verification_status', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_clinic_name(self, v):
        return clean_text(v)


class StaffSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClinicStaff
        fields = ['id', 'clinic', 'user', 'full_name', 'role', 'email', 'mobile', 'is_active', 'created_at']
        read_only_fields = ['id', 'clinic', 'user', 'created_at']

    def validate_full_name(self, v):
        return clean_text(v)


class DoctorSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Doctor
        fields = [
            'id', 'full_name', 'email', 'mobile', 'qualifications', 'specializations', 'experience_years',
            'consultation_modes', 'verification_status',
        ]


class DoctorProfileSerializer(serializers.ModelSerializer):
    """Editable doctor profile fields."""
    class Meta:
        model = Doctor
        fields = [
            'full_name', 'date_of_birth', 'gender', 'mobile', 'medical_council_reg_no', 'medical_council_name',
            'registration_year', 'qualifications', 'university', 'graduation_year', 'experience_years', 'bio',
            'profile_photo', 'specializations', 'languages', 'consultation_modes',
        ]

    def validate_bio(self, v):
        return clean_text(v)


class LabTestTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = LabTestType
        fields = ['id', 'clinic', 'test_name', 'price', 'tat_hours', 'created_at']
        read_only_fields = ['id', 'clinic', 'created_at']


class LabOrderSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source='patient.full_name', read_only=True)
    doctor_name = serializers.CharField(source='doctor.full_name', read_only=True, default=None)

    class Meta:
        model = LabOrder
        fields = [
            'lab_order_id', 'patient', 'patient_name', 'doctor', 'doctor_name', 'clinic', 'test_type',
            'test_name', 'priority', 'status', 'notes', 'result', 'price', 'order_date', 'updated_at',
        ]
        read_only_fields = ['lab_order_id', 'order_date', 'updated_at']
        extra_kwargs = {'test_name': {'required': False}}

    def validate(self, attrs):
        if not attrs.get('test_name') and not attrs.get('test_type') and not self.partial:
            raise serializers.ValidationError({'test_name': ['test_name or test_type is required']})
        return attrs
