from rest_framework import serializers

from clinic.models import Patient
from clinic.sanitize import clean_text


class PatientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = [
            'patient_id', 'full_name', 'email', 'phone', 'age', 'gender', 'date_of_birth', 'blood_group',
            'address', 'emergency_contact', 'profile_photo', 'doctor', 'created_at', 'updated_at',
        ]
        read_only_fields = ['profile_photo', 'created_at', 'updated_at']


class PatientCreateSerializer(PatientSerializer):
    """Staff-side creation; ``patient_id``, ``full_name`` and ``phone`` are required."""
    patient_id = serializers.CharField(max_length=50)
    phone = serializers.CharField(max_length=20)

    def validate_full_name(self, v):
        v = clean_text(v)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters')
        return v

    def validate_phone(self, v):
        return clean_text(v)


class PatientUpdateSerializer(PatientSerializer):
    class Meta(PatientSerializer.Meta):
        read_only_fields = ['patient_id', 'email', 'profile_photo', 'created_at', 'updated_at']

    def validate_full_name(self, v):
        return clean_text(v)


class ProfileUpdateSerializer(serializers.Serializer):
    """Self-service profile update including allergy / chronic condition lists."""
    full_name = serializers.CharField(required=False, max_length=255)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    gender = serializers.CharField(required=False, allow_blank=True, max_length=20)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    blood_group = serializers.CharField(required=False, allow_blank=True, max_length=10)
    address = serializers.CharField(required=False, allow_blank=True)
    emergency_contact = serializers.CharField(required=False, allow_blank=True, max_length=50)
    allergies = serializers.ListField(child=serializers.JSONField(), required=False)
    chronicDiseases = serializers.ListField(child=serializers.JSONField(), required=False)

    def validate_full_name(self, v):
        return clean_text(v)

    def validate_address(self, v):
        return clean_text(v)


class PatientListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200, default=10)
