from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db import transaction

User = get_user_model()

DOCTOR_FIELDS = ('specialization', 'experience', 'education', 'license_id')


def register_user(*, username: str, password: str, name: str, email: str, phone: str = '',
                  role: str = 'patient', **doctor_fields) -> User:
    """Create a patient or doctor account.  Doctors start pending moderation."""
    if role not in (User.ROLE_PATIENT, User.ROLE_DOCTOR):
        raise ValueError('only patient or doctor accounts can be registered')
    if User.objects.filter(username__iexact=username).exists():
        raise ValueError('username already taken')
    if email and User.objects.filter(email__iexact=email).exists():
        raise ValueError('email already registered')
    if role == User.ROLE_DOCTOR:
        missing = [f for f in DOCTOR_FIELDS if doctor_fields.get(f) in (None, '')]
        if missing:
            raise ValueError(f"doctor registration requires: {', '.join(missing)}")
        if User.objects.filter(license_id=doctor_fields['license_id']).exists():
            raise ValueError('license id already registered')
    try:
        validate_password(password)
    except ValidationError as e:
        from rest_framework.exceptions import ValidationError as DRFValidation
        raise DRFValidation({'password': e.messages})

    first, _, last = (name or '').strip().partition(' ')
    with transaction.atomic():
        user = User(
            username=username, first_name=first, last_name=last, email=email, phone=phone or '', role=role,
            status=User.STATUS_PENDING if role == User.ROLE_DOCTOR else User.STATUS_APPROVED,
        )
        if role == User.ROLE_DOCTOR:
            for f in DOCTOR_FIELDS:
                setattr(user, f, doctor_fields[f])
        user.set_password(password)
        user.save()
    return user


def moderate_doctor(doctor: User, status: str) -> User:
    if not doctor.is_doctor:
        raise ValueError('user is not a doctor')
    if status not in (User.STATUS_APPROVED, User.STATUS_REJECTED):
        raise ValueError('status must be approved or rejected')
    doctor.status = status
    # Rejected doctors cannot log in until re-approved
    doctor.is_active = status == User.STATUS_APPROVED
    doctor.save(update_fields=['status', 'is_active'])
    return doctor
