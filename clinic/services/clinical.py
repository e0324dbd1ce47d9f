"""
Clinical documents: prescriptions and medical records.

Both are written by the doctor who owns an appointment, for that
appointment's patient, once the appointment has been approved.  Patients
read their own documents, doctors the ones they wrote and administrators
all of them.  Only the author or an administrator may change a document
and only an administrator may delete one.
"""
from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional, Union

import bleach
from django.db import IntegrityError, transaction
from django.utils import timezone

from clinic.models import Appointment, MedicalRecord, Prescription, User
from clinic.permissions import is_admin_user
from clinic.services.audit import log_action

logger = logging.getLogger(__name__)

# Appointments a doctor can write documents for
DOCUMENTABLE_STATUSES = (Appointment.STATUS_APPROVED, Appointment.STATUS_COMPLETED)
MEDICINE_KEYS = ('name', 'dosage', 'frequency', 'duration', 'notes')

Document = Union[Prescription, MedicalRecord]


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def _clean_list(values: Optional[Iterable[str]]) -> list[str]:
    return [c for c in (_clean(v) for v in values or []) if c]


def _clean_medicines(medicines: Iterable[dict]) -> list[dict]:
    return [{k: _clean(m.get(k)) for k in MEDICINE_KEYS} for m in medicines]


def can_view(user: User, doc: Document) -> bool:
    if is_admin_user(user):
        return True
    if user.is_patient:
        return doc.patient_id == user.id
    if user.is_doctor:
        return doc.doctor_id == user.id
    return False


def can_edit(user: User, doc: Document) -> bool:
    return is_admin_user(user) or (user.is_doctor and doc.doctor_id == user.id)


def _documentable_appointment(doctor: User, appointment_id: int) -> Appointment:
    if not doctor.is_doctor:
        raise PermissionError('Only doctors can write prescriptions and medical records')
    appt = Appointment.objects.select_related('patient').filter(pk=appointment_id).first()
    if not appt:
        raise LookupError('Appointment not found')
    if appt.doctor_id != doctor.id:
        raise PermissionError('You can only write documents for your own appointments')
    if appt.status not in DOCUMENTABLE_STATUSES:
        raise ValueError(f'Cannot write documents for a {appt.status} appointment')
    return appt


def _audit(user: User, action: str, doc: Document) -> None:
    log_action(user=user, action=action, object_type=doc._meta.model_name, object_id=doc.id,
               detail={'appointmentId': doc.appointment_id, 'patientId': doc.patient_id})


# ---------------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------------

def serialize_prescription(rx: Prescription) -> dict:
    return {
        'id': rx.id,
        'number': rx.number,
        'patientId': rx.patient_id,
        'patientName': rx.patient.display_name,
        'doctorId': rx.doctor_id,
        'doctorName': rx.doctor.display_name,
        'specialization': rx.doctor.specialization,
        'appointmentId': rx.appointment_id,
        'appointmentDate': rx.appointment.appointment_date.isoformat(),
        'diagnosis': rx.diagnosis,
        'symptoms': rx.symptoms,
        'medicines': rx.medicines,
        'labTests': rx.lab_tests,
        'instructions': rx.instructions,
        'followUpDate': rx.follow_up_date.isoformat() if rx.follow_up_date else None,
        'status': rx.status,
        'issuedAt': rx.issued_at.isoformat() if rx.issued_at else None,
        'createdAt': rx.created_at.isoformat() if rx.created_at else None,
    }


def create_prescription(doctor: User, *, appointment_id: int, diagnosis: str, medicines: list[dict],
                        patient_id: Optional[int] = None, symptoms: Optional[list[str]] = None,
                        lab_tests: Optional[list[str]] = None, instructions: str = '',
                        follow_up_date: Optional[datetime.date] = None) -> Prescription:
    """Issue the prescription for an appointment; there is at most one per appointment."""
    appt = _documentable_appointment(doctor, appointment_id)
    if patient_id is not None and patient_id != appt.patient_id:
        raise ValueError('Patient does not match the appointment')
    if not medicines:
        raise ValueError('At least one medicine is required')
    if Prescription.objects.filter(appointment=appt).exists():
        raise ValueError('A prescription already exists for this appointment')
    try:
        with transaction.atomic():
            rx = Prescription.objects.create(
                patient=appt.patient, doctor=doctor, appointment=appt,
                diagnosis=_clean(diagnosis), symptoms=_clean_list(symptoms),
                medicines=_clean_medicines(medicines), lab_tests=_clean_list(lab_tests),
                instructions=_clean(instructions), follow_up_date=follow_up_date,
            )
            rx.number = f'RX-{timezone.localdate():%Y%m%d}-{rx.pk:05d}'
            rx.save(update_fields=['number'])
    except IntegrityError:
        raise ValueError('A prescription already exists for this appointment')
    _audit(doctor, 'prescription_create', rx)
    logger.info('prescription %s issued for appointment %s', rx.number, appt.pk)
    return rx


def update_prescription(user: User, rx: Prescription, changes: dict) -> Prescription:
    if not can_edit(user, rx):
        raise PermissionError('You can only update prescriptions you issued')
    fields = []
    for key, value in changes.items():
        if key == 'medicines':
            if not value:
                raise ValueError('At least one medicine is required')
            value = _clean_medicines(value)
        elif key in ('symptoms', 'lab_tests'):
            value = _clean_list(value)
        elif key in ('diagnosis', 'instructions'):
            value = _clean(value)
        elif key not in ('follow_up_date', 'status'):
            continue
        setattr(rx, key, value)
        fields.append(key)
    if fields:
        rx.save(update_fields=fields + ['updated_at'])
        _audit(user, 'prescription_update', rx)
    return rx


# ---------------------------------------------------------------------------
# Medical records
# ---------------------------------------------------------------------------

def serialize_record(r: MedicalRecord) -> dict:
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'patientName': r.patient.display_name,
        'doctorId': r.doctor_id,
        'doctorName': r.doctor.display_name,
        'specialization': r.doctor.specialization,
        'appointmentId': r.appointment_id,
        'appointmentDate': r.appointment.appointment_date.isoformat(),
        'diagnosis': r.diagnosis,
        'symptoms': r.symptoms,
        'treatmentPlan': r.treatment_plan,
        'notes': r.notes,
        'prescription': r.prescription,
        'vitalSigns': r.vital_signs,
        'labResults': r.lab_results,
        'followUpDate': r.follow_up_date.isoformat() if r.follow_up_date else None,
        'status': r.status,
        'createdAt': r.created_at.isoformat() if r.created_at else None,
    }


_RECORD_TEXT_FIELDS = ('diagnosis', 'symptoms', 'treatment_plan', 'notes', 'prescription', 'lab_results')


def create_medical_record(doctor: User, *, appointment_id: int, diagnosis: str, symptoms: str,
                          treatment_plan: str, notes: str = '', prescription: str = '',
                          vital_signs: Optional[dict] = None, lab_results: str = '',
                          follow_up_date: Optional[datetime.date] = None) -> MedicalRecord:
    appt = _documentable_appointment(doctor, appointment_id)
    record = MedicalRecord.objects.create(
        patient=appt.patient, doctor=doctor, appointment=appt,
        diagnosis=_clean(diagnosis), symptoms=_clean(symptoms), treatment_plan=_clean(treatment_plan),
        notes=_clean(notes), prescription=_clean(prescription), vital_signs=vital_signs or {},
        lab_results=_clean(lab_results), follow_up_date=follow_up_date,
    )
    _audit(doctor, 'medical_record_create', record)
    return record


def update_medical_record(user: User, record: MedicalRecord, changes: dict) -> MedicalRecord:
    if not can_edit(user, record):
        raise PermissionError('You can only update records you wrote')
    fields = []
    for key, value in changes.items():
        if key in _RECORD_TEXT_FIELDS:
            value = _clean(value)
        elif key == 'vital_signs':
            value = value or {}
        elif key not in ('follow_up_date', 'status'):
            continue
        setattr(record, key, value)
        fields.append(key)
    if fields:
        record.save(update_fields=fields + ['updated_at'])
        _audit(user, 'medical_record_update', record)
    return record


def delete_document(user: User, doc: Document) -> None:
    if not is_admin_user(user):
        raise PermissionError('Only administrators can delete clinical documents')
    _audit(user, f'{doc._meta.model_name}_delete', doc)
    doc.delete()
