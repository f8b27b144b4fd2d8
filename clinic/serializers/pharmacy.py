from rest_framework import serializers

from clinic.models import (
    CartItem,
    Device,
    DeviceReading,
    Medicine,
    MedicineReminder,
    PatientDocument,
)
from clinic.sanitize import clean_text


class MedicineSerializer(serializers.ModelSerializer):
    clinic_name = serializers.CharField(source='clinic.clinic_name', read_only=True, default=None)

    class Meta:
        model = Medicine
        fields = [
            'medicine_id', 'clinic', 'clinic_name', 'name', 'category', 'manufacturer', 'description', 'batch_number',
            'expiry_date', 'stock_quantity', 'min_stock_level', 'purchase_price', 'mrp', 'storage_location',
            'requires_prescription', 'created_at', 'updated_at',
        ]
        read_only_fields = ['medicine_id', 'clinic', 'created_at', 'updated_at']

    ALIASES = {'medicine_name': 'name', 'min_stock': 'min_stock_level'}

    def to_internal_value(self, data):
        if any(alias in data for alias in self.ALIASES):
            data = {key: data.get(key) for key in data}
            for alias, field in self.ALIASES.items():
                if alias in data and field not in data:
                    data[field] = data.pop(alias)
        return super().to_internal_value(data)

    def validate_name(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Medicine name is required')
        return v

    def validate_description(self, v):
        return clean_text(v)


class CartItemSerializer(serializers.ModelSerializer):
    medicine = MedicineSerializer(read_only=True)

    class Meta:
        model = CartItem
        fields = ['id', 'medicine', 'quantity', 'added_at']


class ReminderSerializer(serializers.ModelSerializer):
    reminder_time = serializers.TimeField(format='%H:%M', input_formats=['%H:%M', '%H:%M:%S', '%I:%M %p'])

    class Meta:
        model = MedicineReminder
        fields = ['id', 'medicine_name', 'dosage', 'reminder_time', 'is_active', 'created_at']
        read_only_fields = ['id', 'created_at']

    def validate_medicine_name(self, v):
        return clean_text(v)


class DocumentSerializer(serializers.ModelSerializer):
    url = serializers.SerializerMethodField()

    class Meta:
        model = PatientDocument
        fields = ['id', 'document_type', 'file_name', 'content_type', 'size', 'url', 'uploaded_at']

    def get_url(self, obj):
        return obj.file.url if obj.file else None


class DeviceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Device
        fields = [
            'id', 'patient', 'device_name', 'device_type', 'connection_type', 'port', 'ip_address', 'status',
            'battery_level', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        extra_kwargs = {'battery_level': {'max_value': 100}}


class DeviceReadingSerializer(serializers.ModelSerializer):
    class Meta:
        model = DeviceReading
        fields = ['id', 'device', 'reading_type', 'value', 'unit', 'recorded_at']
        read_only_fields = ['id']
        extra_kwargs = {'recorded_at': {'required': False}}
