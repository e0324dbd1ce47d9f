"""
Reminder window, scanner and manual trigger tests.

Email is delivered through Django's locmem backend, so ``mail.outbox``
holds one message per successful reminder.
"""
import datetime

import pytest
from django.core import mail
from django.db import DatabaseError

from clinic.models import Appointment
from clinic.services import reminders as reminders_svc
from clinic.services.reminder_windows import (
    REMINDER_WINDOWS, default_reminders, due_windows, get_window, normalise_reminders,
)
from clinic.services.reminders import (
    InvalidAppointmentTime, parse_start_time, scan_due_reminders, send_test_reminder, upcoming_appointments,
)

pytestmark = pytest.mark.django_db

H = datetime.timedelta(hours=1)
M = datetime.timedelta(minutes=1)


def _recipients():
    return sorted(addr for m in mail.outbox for addr in m.to)


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def test_window_table_keys_and_ranges():
    assert [w.key for w in REMINDER_WINDOWS] == ['twentyFourHours', 'twoHours', 'fifteenMinutes']
    assert get_window('twoHours').lower_minutes == 90
    assert get_window('twoHours').upper_minutes == 120
    with pytest.raises(ValueError):
        get_window('oneWeek')


@pytest.mark.parametrize('minutes,expected', [
    (1440, ['twentyFourHours']),
    (1410, ['twentyFourHours']),
    (1380, ['twentyFourHours']),
    (1379, []),
    (120, ['twoHours']),
    (90, ['twoHours']),
    (60, []),
    (15, ['fifteenMinutes']),
    (10, ['fifteenMinutes']),
    (5, []),
])
def test_due_windows_boundaries_are_inclusive(minutes, expected):
    assert [w.key for w in due_windows(minutes)] == expected


def test_normalise_reminders_fills_missing_state():
    out = normalise_reminders({'twentyFourHours': {'sent': True, 'sentAt': 'x'}, 'legacy': {'sent': True}})
    assert out['twentyFourHours'] == {'sent': True, 'sentAt': 'x', 'patientSent': False, 'doctorSent': False}
    assert out['twoHours'] == default_reminders()['twoHours']
    assert out['legacy'] == {'sent': True}
    assert normalise_reminders(None) == default_reminders()


def test_parse_start_time():
    assert parse_start_time('09:05') == datetime.time(9, 5)
    assert parse_start_time('9:05:30') == datetime.time(9, 5)
    for bad in ('', '25:00', '10:75', 'noon'):
        with pytest.raises(InvalidAppointmentTime):
            parse_start_time(bad)


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

def test_24_hour_window_only_at_23_and_a_half_hours(now, appointment_factory):
    appt = appointment_factory(now + 23.5 * H)

    report = scan_due_reminders(now=now)

    appt.refresh_from_db()
    state = appt.reminders
    assert state['twentyFourHours']['sent'] is True
    assert state['twentyFourHours']['patientSent'] is True
    assert state['twentyFourHours']['doctorSent'] is True
    assert state['twentyFourHours']['sentAt'] == now.isoformat()
    assert state['twoHours']['sent'] is False
    assert state['fifteenMinutes']['sent'] is False
    assert _recipients() == ['ayesha@example.com', 'smith@example.com']
    assert report.scanned == 1 and report.updated == 1 and report.errors == 0


def test_reminder_subjects_name_the_counterpart(now, appointment_factory):
    appointment_factory(now + 23.5 * H)
    scan_due_reminders(now=now)
    by_to = {m.to[0]: m for m in mail.outbox}
    assert by_to['ayesha@example.com'].subject == 'Appointment Reminder - Dr. John Smith'
    assert by_to['smith@example.com'].subject == 'Appointment Reminder - Patient: Ayesha Khan'
    assert '24 hours before' in by_to['ayesha@example.com'].body
    assert by_to['ayesha@example.com'].alternatives


def test_rescan_sends_nothing_for_sent_window(now, appointment_factory):
    appointment_factory(now + 23.5 * H)
    scan_due_reminders(now=now)
    assert len(mail.outbox) == 2

    report = scan_due_reminders(now=now)

    assert len(mail.outbox) == 2
    assert report.notified == 0 and report.updated == 0


def test_rescan_only_reaches_missing_recipient(now, appointment_factory):
    reminders = default_reminders()
    reminders['twentyFourHours']['patientSent'] = True
    appt = appointment_factory(now + 23.5 * H, reminders=reminders)

    scan_due_reminders(now=now)

    assert _recipients() == ['smith@example.com']
    appt.refresh_from_db()
    state = appt.reminders['twentyFourHours']
    assert state['doctorSent'] is True and state['patientSent'] is True and state['sent'] is True


def test_failed_delivery_leaves_flag_unset(now, appointment_factory, patient):
    patient.email = ''
    patient.save(update_fields=['email'])
    appt = appointment_factory(now + 23.5 * H)

    scan_due_reminders(now=now)

    appt.refresh_from_db()
    state = appt.reminders['twentyFourHours']
    assert state == {'sent': False, 'sentAt': None, 'patientSent': False, 'doctorSent': True}

    # the patient is retried on the next tick, the doctor is not contacted again
    patient.email = 'ayesha@example.com'
    patient.save(update_fields=['email'])
    mail.outbox.clear()
    scan_due_reminders(now=now + 5 * M)
    assert _recipients() == ['ayesha@example.com']
    appt.refresh_from_db()
    assert appt.reminders['twentyFourHours']['sent'] is True


def test_two_hour_and_fifteen_minute_windows(now, appointment_factory):
    two = appointment_factory(now + 100 * M)
    fifteen = appointment_factory(now + 12 * M)

    scan_due_reminders(now=now)

    two.refresh_from_db()
    fifteen.refresh_from_db()
    assert two.reminders['twoHours']['sent'] is True
    assert two.reminders['twentyFourHours']['sent'] is False
    assert fifteen.reminders['fifteenMinutes']['sent'] is True
    assert fifteen.reminders['twoHours']['sent'] is False
    assert len(mail.outbox) == 4


def test_nothing_due_between_windows(now, appointment_factory):
    appt = appointment_factory(now + 5 * H)
    report = scan_due_reminders(now=now)
    appt.refresh_from_db()
    assert appt.reminders == default_reminders()
    assert mail.outbox == []
    assert report.scanned == 1 and report.notified == 0


@pytest.mark.parametrize('status', [Appointment.STATUS_CANCELLED, Appointment.STATUS_REJECTED,
                                    Appointment.STATUS_COMPLETED])
def test_inactive_appointments_are_never_selected(now, appointment_factory, status):
    appt = appointment_factory(now + 23.5 * H, status=status)
    assert appt not in upcoming_appointments(now)
    report = scan_due_reminders(now=now)
    assert report.scanned == 0
    assert mail.outbox == []


def test_far_future_appointments_are_not_loaded(now, appointment_factory):
    near = appointment_factory(now + 23.5 * H)
    far = appointment_factory(now + 72 * H)
    selected = list(upcoming_appointments(now))
    assert near in selected
    assert far not in selected


def test_pending_appointments_receive_reminders(now, appointment_factory):
    appointment_factory(now + 23.5 * H, status=Appointment.STATUS_PENDING)
    scan_due_reminders(now=now)
    assert len(mail.outbox) == 2


def test_started_appointment_is_skipped(now, appointment_factory):
    appt = appointment_factory(now - 10 * M)
    scan_due_reminders(now=now)
    appt.refresh_from_db()
    assert appt.reminders == default_reminders()
    assert mail.outbox == []


def test_malformed_start_time_is_skipped_and_others_continue(now, appointment_factory):
    broken = appointment_factory(now + 23.5 * H)
    Appointment.objects.filter(pk=broken.pk).update(start_time='soon')
    appointment_factory(now + 23.5 * H)

    report = scan_due_reminders(now=now)

    assert report.errors == 1
    assert report.updated == 1
    assert len(mail.outbox) == 2


def test_persistence_failure_is_logged_and_scan_continues(now, appointment_factory, monkeypatch):
    appt = appointment_factory(now + 23.5 * H)

    def boom(self, *args, **kwargs):
        raise DatabaseError('disk full')

    monkeypatch.setattr(Appointment, 'save', boom)
    report = scan_due_reminders(now=now)
    monkeypatch.undo()

    assert report.errors == 1
    # delivered, but the state was not stored: at-least-once
    assert len(mail.outbox) == 2
    appt.refresh_from_db()
    assert appt.reminders['twentyFourHours']['sent'] is False


def test_channel_exception_does_not_abort_tick(now, appointment_factory, monkeypatch):
    appointment_factory(now + 23.5 * H)

    class Exploding:
        name = 'email'

        def send(self, *args, **kwargs):
            raise RuntimeError('smtp down')

    monkeypatch.setattr('clinic.services.dispatcher.active_channels', lambda: [Exploding()])
    report = scan_due_reminders(now=now)
    assert report.errors == 0
    assert report.notified == 2
    assert report.updated == 0


# ---------------------------------------------------------------------------
# Manual trigger
# ---------------------------------------------------------------------------

def test_manual_trigger_reports_both_sides_and_keeps_state(now, appointment_factory):
    appt = appointment_factory(now + 5 * 24 * H)

    results = send_test_reminder(appt.pk)

    assert results == {'patient': {'email': True}, 'doctor': {'email': True}}
    assert _recipients() == ['ayesha@example.com', 'smith@example.com']
    appt.refresh_from_db()
    assert appt.reminders == default_reminders()


def test_manual_trigger_reports_failures(now, appointment_factory, doctor):
    doctor.email = ''
    doctor.save(update_fields=['email'])
    appt = appointment_factory(now + 3 * H)
    results = send_test_reminder(appt.pk)
    assert results == {'patient': {'email': True}, 'doctor': {'email': False}}


def test_manual_trigger_unknown_appointment():
    with pytest.raises(Appointment.DoesNotExist):
        send_test_reminder(987654)


def test_scan_uses_current_time_by_default(appointment_factory, monkeypatch):
    seen = {}
    real = reminders_svc.upcoming_appointments

    def spy(now):
        seen['now'] = now
        return real(now)

    monkeypatch.setattr(reminders_svc, 'upcoming_appointments', spy)
    scan_due_reminders()
    assert seen['now'] is not None and seen['now'].tzinfo is not None
