from rest_framework import serializers

from clinic.models import SecondOpinionRequest


class SubmitSecondOpinionSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='doctor_id')
    chiefComplaint = serializers.CharField(max_length=2000, source='chief_complaint')
    medicalHistory = serializers.CharField(required=False, allow_blank=True, max_length=4000,
                                           source='medical_history')
    currentMedications = serializers.CharField(required=False, allow_blank=True, max_length=2000,
                                               source='current_medications')
    allergies = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    priority = serializers.ChoiceField(choices=[p for p, _ in SecondOpinionRequest.PRIORITY_CHOICES],
                                       required=False, default='normal')


class OpinionSerializer(serializers.Serializer):
    diagnosis = serializers.CharField(max_length=2000)
    recommendations = serializers.CharField(max_length=4000)
    prescribedTreatment = serializers.CharField(required=False, allow_blank=True, max_length=4000,
                                                source='prescribed_treatment')
    additionalNotes = serializers.CharField(required=False, allow_blank=True, max_length=4000,
                                            source='additional_notes')


class SecondOpinionQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s for s, _ in SecondOpinionRequest.STATUS_CHOICES], required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)
