"""
Second-opinion requests.

A patient describes their case and either names an approved doctor
(the request starts ``assigned``) or leaves it in the ``pending`` pool
for any approved doctor to accept.  The assigned doctor may mark the
case ``under_review`` and completes it by submitting an opinion, at
which point the patient receives the "second opinion ready" notice.
Patients can withdraw a request until review starts.

Status changes re-read the row under a lock, so two doctors accepting
the same pooled request cannot both win.
"""
from __future__ import annotations

import logging
from typing import Optional

import bleach
from django.db import transaction
from django.utils import timezone

from clinic.models import SecondOpinionRequest, User
from clinic.permissions import is_admin_user
from clinic.services.audit import log_action
from clinic.services.dispatcher import notify
from clinic.services.formatter import KIND_SECOND_OPINION_READY
from clinic.services.recipients import ROLE_PATIENT

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 280


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def serialize_request(r: SecondOpinionRequest) -> dict:
    opinion = None
    if r.status == SecondOpinionRequest.STATUS_COMPLETED:
        opinion = {
            'diagnosis': r.diagnosis,
            'recommendations': r.recommendations,
            'prescribedTreatment': r.prescribed_treatment,
            'additionalNotes': r.additional_notes,
            'submittedAt': r.completed_at.isoformat() if r.completed_at else None,
        }
    return {
        'id': r.id,
        'patientId': r.patient_id,
        'patientName': r.patient.display_name,
        'doctorId': r.doctor_id,
        'doctorName': r.doctor.display_name if r.doctor else None,
        'specialization': r.doctor.specialization if r.doctor else None,
        'chiefComplaint': r.chief_complaint,
        'medicalHistory': r.medical_history,
        'currentMedications': r.current_medications,
        'allergies': r.allergies,
        'priority': r.priority,
        'status': r.status,
        'opinion': opinion,
        'assignedAt': r.assigned_at.isoformat() if r.assigned_at else None,
        'completedAt': r.completed_at.isoformat() if r.completed_at else None,
        'createdAt': r.created_at.isoformat() if r.created_at else None,
    }


def can_view(user: User, r: SecondOpinionRequest) -> bool:
    if is_admin_user(user):
        return True
    if user.is_patient:
        return r.patient_id == user.id
    if user.is_doctor:
        return r.doctor_id == user.id or r.status == SecondOpinionRequest.STATUS_PENDING
    return False


def submit_request(patient: User, *, chief_complaint: str, doctor_id: Optional[int] = None,
                   medical_history: str = '', current_medications: str = '', allergies: str = '',
                   priority: str = 'normal') -> SecondOpinionRequest:
    if not patient.is_patient:
        raise PermissionError('Only patients can request second opinions')
    doctor = None
    if doctor_id:
        doctor = User.objects.filter(id=doctor_id, role=User.ROLE_DOCTOR, status=User.STATUS_APPROVED,
                                     is_active=True).first()
        if not doctor:
            raise LookupError('Selected doctor not found or not approved')
    req = SecondOpinionRequest.objects.create(
        patient=patient, doctor=doctor,
        chief_complaint=_clean(chief_complaint), medical_history=_clean(medical_history),
        current_medications=_clean(current_medications), allergies=_clean(allergies), priority=priority,
        status=SecondOpinionRequest.STATUS_ASSIGNED if doctor else SecondOpinionRequest.STATUS_PENDING,
        assigned_at=timezone.now() if doctor else None,
    )
    log_action(user=patient, action='second_opinion_submit', object_type='second_opinion', object_id=req.id,
               detail={'doctorId': doctor_id})
    return req


def _lock(req: SecondOpinionRequest) -> SecondOpinionRequest:
    return SecondOpinionRequest.objects.select_for_update().get(pk=req.pk)


def _move(req: SecondOpinionRequest, to_status: str, user: User) -> None:
    if not req.can_transition(to_status):
        raise ValueError(f'Cannot change a {req.status} request to {to_status}')
    from_status = req.status
    req.status = to_status
    log_action(user=user, action=f'second_opinion_{to_status}', object_type='second_opinion', object_id=req.id,
               detail={'from': from_status, 'to': to_status})


def _ensure_assigned(doctor: User, req: SecondOpinionRequest) -> None:
    if not doctor.is_doctor or req.doctor_id != doctor.id:
        raise PermissionError('You can only work on cases assigned to you')


@transaction.atomic
def cancel_request(patient: User, req: SecondOpinionRequest) -> SecondOpinionRequest:
    if req.patient_id != patient.id:
        raise PermissionError('You can only cancel your own requests')
    req = _lock(req)
    _move(req, SecondOpinionRequest.STATUS_CANCELLED, patient)
    req.save(update_fields=['status', 'updated_at'])
    return req


@transaction.atomic
def accept_request(doctor: User, req: SecondOpinionRequest) -> SecondOpinionRequest:
    """Take a request from the pending pool."""
    if not doctor.is_doctor:
        raise PermissionError('Only doctors can accept second opinion requests')
    req = _lock(req)
    _move(req, SecondOpinionRequest.STATUS_ASSIGNED, doctor)
    req.doctor = doctor
    req.assigned_at = timezone.now()
    req.save(update_fields=['status', 'doctor', 'assigned_at', 'updated_at'])
    return req


@transaction.atomic
def start_review(doctor: User, req: SecondOpinionRequest) -> SecondOpinionRequest:
    req = _lock(req)
    _ensure_assigned(doctor, req)
    _move(req, SecondOpinionRequest.STATUS_UNDER_REVIEW, doctor)
    req.save(update_fields=['status', 'updated_at'])
    return req


def submit_opinion(doctor: User, req: SecondOpinionRequest, *, diagnosis: str, recommendations: str,
                   prescribed_treatment: str = '', additional_notes: str = '') -> tuple[SecondOpinionRequest, dict]:
    """Complete the case and tell the patient the opinion is ready.

    Returns the stored request and the per-channel delivery results of
    the notice; a failed notice does not undo the submission.
    """
    with transaction.atomic():
        req = _lock(req)
        _ensure_assigned(doctor, req)
        _move(req, SecondOpinionRequest.STATUS_COMPLETED, doctor)
        req.diagnosis = _clean(diagnosis)
        req.recommendations = _clean(recommendations)
        req.prescribed_treatment = _clean(prescribed_treatment)
        req.additional_notes = _clean(additional_notes)
        req.completed_at = timezone.now()
        req.save()
    summary = req.diagnosis if len(req.diagnosis) <= SUMMARY_MAX_CHARS else req.diagnosis[:SUMMARY_MAX_CHARS - 3] + '...'
    results = notify(req, ROLE_PATIENT, KIND_SECOND_OPINION_READY, extra={'summary': summary})
    logger.info('second opinion %s completed, notice: %s', req.pk, results)
    return req, results
