"""
Appointment status machine tests at the service layer.

Each transition re-reads the row before checking the current status, so
an instance loaded before another request changed the appointment cannot
move a terminal appointment back into the workflow.
"""
import datetime

import pytest
from django.core import mail

from clinic.models import Appointment, AuditEvent
from clinic.services.appointments import (
    approve_appointment, cancel_appointment, complete_appointment, reject_appointment,
)

pytestmark = pytest.mark.django_db

H = datetime.timedelta(hours=1)


@pytest.mark.parametrize('status,allowed', [
    (Appointment.STATUS_PENDING, {'approved', 'rejected'}),
    (Appointment.STATUS_APPROVED, {'completed', 'cancelled'}),
    (Appointment.STATUS_REJECTED, set()),
    (Appointment.STATUS_COMPLETED, set()),
    (Appointment.STATUS_CANCELLED, set()),
])
def test_transition_table(status, allowed):
    appt = Appointment(status=status)
    targets = {s for s, _ in Appointment.STATUS_CHOICES}
    assert {t for t in targets if appt.can_transition(t)} == allowed


def test_pending_appointment_cannot_be_cancelled(now, appointment_factory, patient):
    appt = appointment_factory(now + 48 * H, status=Appointment.STATUS_PENDING)
    with pytest.raises(ValueError):
        cancel_appointment(patient, appt)
    appt.refresh_from_db()
    assert appt.status == Appointment.STATUS_PENDING


def test_approved_appointment_is_cancelled(now, appointment_factory, patient):
    appt = appointment_factory(now + 48 * H)
    stored = cancel_appointment(patient, appt)
    assert stored.status == Appointment.STATUS_CANCELLED
    assert AuditEvent.objects.filter(action='appointment_cancelled', object_id=appt.id).exists()


def test_stale_copy_cannot_approve_a_rejected_request(now, appointment_factory, doctor):
    stale = appointment_factory(now + 48 * H, status=Appointment.STATUS_PENDING)
    reject_appointment(doctor, Appointment.objects.get(pk=stale.pk), reason='Fully booked')

    with pytest.raises(ValueError):
        approve_appointment(doctor, stale)

    stale.refresh_from_db()
    assert stale.status == Appointment.STATUS_REJECTED
    assert stale.approved_at is None
    assert mail.outbox == []


def test_stale_copy_cannot_reopen_a_cancelled_appointment(now, appointment_factory, doctor, patient):
    stale = appointment_factory(now + 48 * H)
    cancel_appointment(patient, Appointment.objects.get(pk=stale.pk))

    with pytest.raises(ValueError):
        complete_appointment(doctor, stale, notes='Seen')

    stale.refresh_from_db()
    assert stale.status == Appointment.STATUS_CANCELLED
    assert stale.notes == ''


def test_transition_returns_stored_row(now, appointment_factory, doctor):
    appt = appointment_factory(now + 48 * H, status=Appointment.STATUS_PENDING)
    stored, results = approve_appointment(doctor, appt, notes='Fasting required')
    assert stored.status == Appointment.STATUS_APPROVED
    assert stored.approved_at is not None
    assert results == {'email': True}
    assert mail.outbox[0].to == ['ayesha@example.com']
