from django.utils import timezone
from rest_framework import serializers

from clinic.models import MedicalRecord, Prescription

_DOCUMENT_STATUSES = [s for s, _ in Prescription.STATUS_CHOICES]


def _future_date(v):
    if v and v <= timezone.localdate():
        raise serializers.ValidationError('Follow-up date must be in the future')
    return v


class MedicineSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=128)
    dosage = serializers.CharField(max_length=64)
    frequency = serializers.ChoiceField(choices=Prescription.FREQUENCIES)
    duration = serializers.CharField(max_length=64)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')


class PrescriptionSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField(min_value=1, source='appointment_id')
    patientId = serializers.IntegerField(min_value=1, required=False, source='patient_id')
    diagnosis = serializers.CharField(max_length=500)
    symptoms = serializers.ListField(child=serializers.CharField(max_length=200), required=False)
    medicines = MedicineSerializer(many=True, allow_empty=False)
    labTests = serializers.ListField(child=serializers.CharField(max_length=200), required=False,
                                     source='lab_tests')
    instructions = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    followUpDate = serializers.DateField(required=False, allow_null=True, source='follow_up_date')

    def validate_followUpDate(self, v):
        return _future_date(v)


class PrescriptionUpdateSerializer(PrescriptionSerializer):
    """Fields a prescription's author may change; the appointment is fixed."""
    appointmentId = None
    patientId = None
    status = serializers.ChoiceField(choices=_DOCUMENT_STATUSES, required=False)


class BloodPressureSerializer(serializers.Serializer):
    systolic = serializers.IntegerField(min_value=40, max_value=300)
    diastolic = serializers.IntegerField(min_value=20, max_value=200)


class VitalSignsSerializer(serializers.Serializer):
    bloodPressure = BloodPressureSerializer(required=False)
    temperature = serializers.FloatField(required=False, min_value=30, max_value=45)
    heartRate = serializers.IntegerField(required=False, min_value=20, max_value=250)
    weight = serializers.FloatField(required=False, min_value=0, max_value=500)
    height = serializers.FloatField(required=False, min_value=0, max_value=300)


class MedicalRecordSerializer(serializers.Serializer):
    appointmentId = serializers.IntegerField(min_value=1, source='appointment_id')
    diagnosis = serializers.CharField(max_length=2000)
    symptoms = serializers.CharField(max_length=2000)
    treatmentPlan = serializers.CharField(max_length=4000, source='treatment_plan')
    notes = serializers.CharField(required=False, allow_blank=True, max_length=4000)
    prescription = serializers.CharField(required=False, allow_blank=True, max_length=4000)
    vitalSigns = VitalSignsSerializer(required=False, source='vital_signs')
    labResults = serializers.CharField(required=False, allow_blank=True, max_length=4000, source='lab_results')
    followUpDate = serializers.DateField(required=False, allow_null=True, source='follow_up_date')

    def validate_followUpDate(self, v):
        return _future_date(v)


class MedicalRecordUpdateSerializer(MedicalRecordSerializer):
    appointmentId = None
    status = serializers.ChoiceField(choices=[s for s, _ in MedicalRecord.STATUS_CHOICES], required=False)


class DocumentQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=_DOCUMENT_STATUSES, required=False)
    patientId = serializers.IntegerField(required=False, min_value=1)
    doctorId = serializers.IntegerField(required=False, min_value=1)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)
