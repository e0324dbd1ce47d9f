import datetime
import logging
from typing import Optional

import bleach
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from clinic.models import Appointment
from clinic.services.audit import log_action
from clinic.services.dispatcher import notify
from clinic.services.formatter import KIND_APPROVAL
from clinic.services.recipients import ROLE_PATIENT
from clinic.services.reminders import appointment_start, parse_start_time

User = get_user_model()
logger = logging.getLogger(__name__)


def _clean(text: Optional[str]) -> str:
    return bleach.clean((text or '').strip(), strip=True)


def serialize_appointment(a: Appointment) -> dict:
    return {
        'id': a.id,
        'patientId': a.patient_id,
        'patientName': a.patient.display_name,
        'patientEmail': a.patient.email,
        'patientPhone': a.patient.phone,
        'doctorId': a.doctor_id,
        'doctorName': a.doctor.display_name,
        'specialization': a.doctor.specialization,
        'appointmentDate': a.appointment_date.isoformat(),
        'startTime': a.start_time,
        'endTime': a.end_time,
        'status': a.status,
        'requestMessage': a.request_message,
        'rejectionReason': a.rejection_reason,
        'notes': a.notes,
        'approvedAt': a.approved_at.isoformat() if a.approved_at else None,
        'reminders': a.reminders,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
    }


@transaction.atomic
def book_appointment(patient: User, *, doctor_id: int, appointment_date: datetime.date, start_time: str,
                     end_time: str, request_message: str = '') -> Appointment:
    if not patient.is_patient:
        raise PermissionError('Only patients can book appointments')
    doctor = User.objects.filter(id=doctor_id, role=User.ROLE_DOCTOR).first()
    if not doctor:
        raise LookupError('Doctor not found')
    if doctor.status != User.STATUS_APPROVED or not doctor.is_active:
        raise ValueError('Doctor is not accepting appointments')
    if parse_start_time(end_time) <= parse_start_time(start_time):
        raise ValueError('endTime must be after startTime')

    appt = Appointment(
        patient=patient, doctor=doctor, appointment_date=appointment_date,
        start_time=start_time, end_time=end_time, request_message=_clean(request_message),
    )
    if appointment_start(appt) <= timezone.now():
        raise ValueError('Appointment must be in the future')

    taken = (Appointment.objects.select_for_update()
             .filter(doctor=doctor, appointment_date=appointment_date, start_time=start_time,
                     status__in=Appointment.ACTIVE_STATUSES)
             .exists())
    if taken:
        raise ValueError('This appointment slot is already booked or pending approval')
    appt.save()
    log_action(user=patient, action='appointment_book', object_type='appointment', object_id=appt.id,
               detail={'doctorId': doctor.id})
    return appt


def _lock(appt: Appointment) -> Appointment:
    """Re-read ``appt`` under a row lock; status checks run on this copy."""
    return Appointment.objects.select_for_update().get(pk=appt.pk)


def _transition(appt: Appointment, to_status: str, user: User) -> None:
    if not appt.can_transition(to_status):
        raise ValueError(f'Cannot change a {appt.status} appointment to {to_status}')
    from_status = appt.status
    appt.status = to_status
    log_action(user=user, action=f'appointment_{to_status}', object_type='appointment', object_id=appt.id,
               detail={'from': from_status, 'to': to_status})


def _ensure_doctor_owner(user: User, appt: Appointment) -> None:
    if not user.is_doctor:
        raise PermissionError('Only doctors can manage appointment requests')
    if appt.doctor_id != user.id:
        raise PermissionError('You can only manage your own appointments')


def approve_appointment(user: User, appt: Appointment, notes: Optional[str] = None) -> tuple[Appointment, dict]:
    """Approve a pending request and notify the patient.

    Returns the stored appointment and the per-channel delivery results
    of the approval notice; a failed notice does not undo the approval.
    """
    _ensure_doctor_owner(user, appt)
    with transaction.atomic():
        appt = _lock(appt)
        _transition(appt, Appointment.STATUS_APPROVED, user)
        appt.approved_at = timezone.now()
        if notes:
            appt.notes = _clean(notes)
        appt.save(update_fields=['status', 'approved_at', 'notes', 'updated_at'])
    results = notify(appt, ROLE_PATIENT, KIND_APPROVAL)
    logger.info('appointment %s approved, approval notice: %s', appt.pk, results)
    return appt, results


@transaction.atomic
def reject_appointment(user: User, appt: Appointment, reason: Optional[str] = None) -> Appointment:
    _ensure_doctor_owner(user, appt)
    appt = _lock(appt)
    _transition(appt, Appointment.STATUS_REJECTED, user)
    if reason:
        appt.rejection_reason = _clean(reason)
    appt.save(update_fields=['status', 'rejection_reason', 'updated_at'])
    return appt


@transaction.atomic
def complete_appointment(user: User, appt: Appointment, notes: Optional[str] = None) -> Appointment:
    _ensure_doctor_owner(user, appt)
    appt = _lock(appt)
    _transition(appt, Appointment.STATUS_COMPLETED, user)
    if notes:
        appt.notes = _clean(notes)
    appt.save(update_fields=['status', 'notes', 'updated_at'])
    return appt


@transaction.atomic
def cancel_appointment(user: User, appt: Appointment) -> Appointment:
    """Cancel an approved appointment on the patient's behalf.

    Pending requests cannot be cancelled; the doctor rejects them.
    """
    if appt.patient_id != user.id:
        raise PermissionError('You can only cancel your own appointments')
    appt = _lock(appt)
    _transition(appt, Appointment.STATUS_CANCELLED, user)
    appt.save(update_fields=['status', 'updated_at'])
    return appt


def paginate(qs, page: int = 1, page_size: int = 20):
    page = max(1, int(page or 1))
    page_size = min(100, max(1, int(page_size or 20)))
    total = qs.count()
    start = (page-1)*page_size
    return qs[start:start+page_size], total, page, page_size
