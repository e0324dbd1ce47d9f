import bleach
from rest_framework import serializers


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()

    def validate_username(self, v):
        v = (v or '').strip()
        if not v:
            raise serializers.ValidationError('Username is required')
        return v

    def validate_password(self, v):
        if not v:
            raise serializers.ValidationError('Password is required')
        return v


class RegisterSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True, min_length=8)
    name = serializers.CharField(max_length=128)
    email = serializers.EmailField()
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    role = serializers.ChoiceField(choices=['patient', 'doctor'], default='patient')
    # doctor only
    specialization = serializers.CharField(required=False, allow_blank=True, max_length=128)
    experience = serializers.IntegerField(required=False, min_value=0, max_value=80)
    education = serializers.CharField(required=False, allow_blank=True, max_length=255)
    licenseId = serializers.CharField(required=False, allow_blank=True, max_length=64)

    def validate_name(self, v):
        v = bleach.clean((v or '').strip(), strip=True)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters')
        return v

    def validate_phone(self, v):
        return bleach.clean((v or '').strip(), strip=True)

    def validate(self, attrs):
        if attrs.get('role') == 'doctor':
            missing = [f for f in ('specialization', 'experience', 'education', 'licenseId')
                       if attrs.get(f) in (None, '')]
            if missing:
                raise serializers.ValidationError({f: 'Required for doctor registration' for f in missing})
        return attrs
