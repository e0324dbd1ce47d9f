"""
Notification recipients.

An appointment or a second-opinion case has exactly two parties.  They
are resolved once per case into a :class:`PatientRecipient` and a
:class:`DoctorRecipient` carrying only the contact and display fields
the notification layer needs, so that formatting and delivery never
reach back into the ORM.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

from clinic.models import Appointment, SecondOpinionRequest, User

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLES = (ROLE_PATIENT, ROLE_DOCTOR)


@dataclass(frozen=True)
class PatientRecipient:
    name: str
    email: str = ''
    phone: str = ''
    role: Literal['patient'] = ROLE_PATIENT


@dataclass(frozen=True)
class DoctorRecipient:
    name: str
    email: str = ''
    phone: str = ''
    specialization: str = ''
    role: Literal['doctor'] = ROLE_DOCTOR

    @property
    def title(self) -> str:
        return f'Dr. {self.name}'


Recipient = Union[PatientRecipient, DoctorRecipient]


@dataclass(frozen=True)
class Participants:
    patient: PatientRecipient
    doctor: DoctorRecipient

    def recipient_for(self, role: str) -> Recipient:
        if role == ROLE_PATIENT:
            return self.patient
        if role == ROLE_DOCTOR:
            return self.doctor
        raise ValueError(f'unknown recipient role: {role}')

    def counterpart_for(self, role: str) -> Recipient:
        return self.doctor if role == ROLE_PATIENT else self.patient


def _patient_from_user(user: User) -> PatientRecipient:
    return PatientRecipient(name=user.display_name, email=user.email or '', phone=user.phone or '')


def _doctor_from_user(user: User) -> DoctorRecipient:
    return DoctorRecipient(
        name=user.display_name,
        email=user.email or '',
        phone=user.phone or '',
        specialization=user.specialization or '',
    )


def resolve_participants(case: Union[Appointment, SecondOpinionRequest]) -> Participants:
    if case.doctor is None:
        raise ValueError(f'{case._meta.model_name} {case.pk} has no doctor assigned')
    return Participants(
        patient=_patient_from_user(case.patient),
        doctor=_doctor_from_user(case.doctor),
    )
