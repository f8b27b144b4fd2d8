import re

from rest_framework import serializers

from clinic.sanitize import clean_text

PAN_RE = re.compile(r'^[A-Z]{5}[0-9]{4}[A-Z]$')
IFSC_RE = re.compile(r'^[A-Z]{4}0[A-Z0-9]{6}$')
GSTIN_RE = re.compile(r'^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$')

REGISTER_ROLES = ['patient', 'doctor', 'clinic', 'receptionist', 'nurse', 'lab', 'pharmacy']


def _clean(v: str) -> str:
    return clean_text(v)


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)

    def validate_email(self, v):
        v = (v or '').strip().lower()
        if not v:
            raise serializers.ValidationError('Email is required')
        return v


class RegisterSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)
    role = serializers.ChoiceField(choices=REGISTER_ROLES, required=False, default='patient')

    def validate_full_name(self, v):
        v = _clean(v)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters')
        return v


class BankDetailsSerializer(serializers.Serializer):
    accountName = serializers.CharField(required=False, allow_blank=True)
    accountNumber = serializers.CharField(required=False, allow_blank=True)
    ifsc = serializers.CharField(required=False, allow_blank=True)
    pan = serializers.CharField(required=False, allow_blank=True)
    gstin = serializers.CharField(required=False, allow_blank=True)

    def validate_pan(self, v):
        v = (v or '').strip().upper()
        if v and not PAN_RE.match(v):
            raise serializers.ValidationError('Invalid PAN format')
        return v

    def validate_ifsc(self, v):
        v = (v or '').strip().upper()
        if v and not IFSC_RE.match(v):
            raise serializers.ValidationError('Invalid IFSC format')
        return v

    def validate_gstin(self, v):
        v = (v or '').strip().upper()
        if v and not GSTIN_RE.match(v):
            raise serializers.ValidationError('Invalid GSTIN format')
        return v


class DoctorRegistrationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    mobile = serializers.CharField(max_length=20)
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)
    gender = serializers.CharField(required=False, allow_blank=True)
    dob = serializers.DateField(required=False, allow_null=True)
    mciReg = serializers.CharField(max_length=100)
    councilName = serializers.CharField(max_length=255)
    regYear = serializers.IntegerField(min_value=1900, max_value=2100)
    degrees = serializers.CharField(max_length=255)
    university = serializers.CharField(max_length=255)
    gradYear = serializers.IntegerField(min_value=1900, max_value=2100)
    experience = serializers.IntegerField(min_value=0, max_value=80)
    specializations = serializers.ListField(child=serializers.CharField(), required=False)
    languages = serializers.ListField(child=serializers.CharField(), required=False)
    consultationModes = serializers.ListField(child=serializers.CharField(), required=False)
    bankDetails = BankDetailsSerializer(required=False)
    bio = serializers.CharField(required=False, allow_blank=True)

    def validate_name(self, v):
        return _clean(v)

    def validate_bio(self, v):
        return _clean(v)


class ClinicRegistrationSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    mobile = serializers.CharField(max_length=20)
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)
    establishedYear = serializers.IntegerField(required=False, allow_null=True, min_value=1800, max_value=2100)
    tagline = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    address = serializers.CharField()
    pinCode = serializers.CharField(max_length=10)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    website = serializers.CharField(required=False, allow_blank=True)
    medicalCouncilRegNo = serializers.CharField(max_length=100)
    bankDetails = BankDetailsSerializer(required=False)
    services = serializers.ListField(child=serializers.CharField(), required=False)
    facilities = serializers.ListField(child=serializers.CharField(), required=False)
    paymentModes = serializers.ListField(child=serializers.CharField(), required=False)
    bookingModes = serializers.ListField(child=serializers.CharField(), required=False)

    def validate_name(self, v):
        return _clean(v)

    def validate_description(self, v):
        return _clean(v)


class OtpSerializer(serializers.Serializer):
    email = serializers.EmailField()
    otp = serializers.CharField(max_length=10)
