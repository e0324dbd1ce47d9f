import re

from rest_framework import serializers

_HHMM = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def _time_field(v):
    v = (v or '').strip()
    if not _HHMM.match(v):
        raise serializers.ValidationError('Time must be HH:MM (24-hour)')
    return v


class BookAppointmentSerializer(serializers.Serializer):
    doctorId = serializers.IntegerField(min_value=1)
    appointmentDate = serializers.DateField()
    startTime = serializers.CharField(max_length=5)
    endTime = serializers.CharField(max_length=5)
    requestMessage = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate_startTime(self, v):
        return _time_field(v)

    def validate_endTime(self, v):
        return _time_field(v)


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=['pending', 'approved', 'rejected', 'completed', 'cancelled'], required=False)
    date = serializers.DateField(required=False)
    doctorId = serializers.IntegerField(required=False, min_value=1)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)


class DoctorQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, max_length=64)
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=128)
    status = serializers.ChoiceField(choices=['pending', 'approved', 'rejected'], required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)
