"""
Appointment reminder scanning.

``scan_due_reminders`` is one tick of the reminder job.  It looks at
every pending or approved appointment that has not started yet, works
out which reminder windows are due, notifies whichever party has not
been reached for that window and stores the updated ``reminders``
structure with a single write per appointment.

A recipient's sub-flag is only set after a channel reports delivery, so
a failed send is retried on the next tick while the window is still
open.  The window's ``sent`` flag follows once both sides are reached.
If the write fails after a successful send the flags are lost and the
next tick may send again; reminders are delivered at least once, not
exactly once.
"""
from __future__ import annotations

import datetime
import logging
import re
from dataclasses import asdict, dataclass
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from clinic.models import Appointment
from clinic.services.dispatcher import delivered, send_reminder
from clinic.services.recipients import ROLE_DOCTOR, ROLE_PATIENT, resolve_participants
from clinic.services.reminder_windows import REMINDER_WINDOWS, due_windows, get_window, normalise_reminders

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$')

_SUB_FLAGS = ((ROLE_PATIENT, 'patientSent'), (ROLE_DOCTOR, 'doctorSent'))


class InvalidAppointmentTime(ValueError):
    pass


@dataclass
class ScanReport:
    scanned: int = 0
    notified: int = 0
    updated: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def parse_start_time(value: str) -> datetime.time:
    m = _TIME_RE.match(value or '')
    if not m:
        raise InvalidAppointmentTime(f'unparsable start time {value!r}')
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        raise InvalidAppointmentTime(f'start time out of range {value!r}')
    return datetime.time(hour, minute)


def appointment_start(appointment: Appointment) -> datetime.datetime:
    """Exact start instant of ``appointment`` in the project time zone."""
    naive = datetime.datetime.combine(appointment.appointment_date, parse_start_time(appointment.start_time))
    return timezone.make_aware(naive, timezone.get_current_timezone())


def upcoming_appointments(now: datetime.datetime):
    """Active appointments close enough to start for some reminder window to apply."""
    horizon = now + datetime.timedelta(minutes=max(w.upper_minutes for w in REMINDER_WINDOWS) + 60)
    return (
        Appointment.objects
        .filter(status__in=Appointment.ACTIVE_STATUSES,
                appointment_date__gte=timezone.localdate(now),
                appointment_date__lte=timezone.localdate(horizon))
        .select_related('patient', 'doctor')
        .order_by('appointment_date', 'start_time', 'id')
    )


def process_appointment(appointment: Appointment, now: datetime.datetime, report: ScanReport) -> bool:
    """Send whatever is due for one appointment; return True if reminders changed."""
    minutes_remaining = (appointment_start(appointment) - now).total_seconds() / 60
    if minutes_remaining <= 0:
        return False

    reminders = normalise_reminders(appointment.reminders)
    participants = None
    changed = False
    for window in due_windows(minutes_remaining):
        state = reminders[window.key]
        if state['sent']:
            continue
        logger.info('%s reminder due for appointment %s', window.label, appointment.pk)
        participants = participants or resolve_participants(appointment)
        for role, flag in _SUB_FLAGS:
            if state[flag]:
                continue
            results = send_reminder(appointment, role, window, participants=participants)
            report.notified += 1
            if delivered(results):
                state[flag] = True
                changed = True
            else:
                logger.warning('%s reminder to %s failed for appointment %s: %s',
                               window.label, role, appointment.pk, results)
        if state['patientSent'] and state['doctorSent']:
            state['sent'] = True
            state['sentAt'] = now.isoformat()
            changed = True

    if changed:
        appointment.reminders = reminders
        appointment.save(update_fields=['reminders', 'updated_at'])
    return changed


def scan_due_reminders(now: Optional[datetime.datetime] = None) -> ScanReport:
    now = now or timezone.now()
    report = ScanReport()
    logger.info('checking appointment reminders at %s', timezone.localtime(now).isoformat())

    for appointment in upcoming_appointments(now):
        report.scanned += 1
        try:
            if process_appointment(appointment, now, report):
                report.updated += 1
        except InvalidAppointmentTime as e:
            report.errors += 1
            logger.error('skipping appointment %s: %s', appointment.pk, e)
        except DatabaseError:
            report.errors += 1
            logger.exception('could not store reminder state for appointment %s; it may be re-sent', appointment.pk)
        except Exception:
            report.errors += 1
            logger.exception('error processing reminders for appointment %s', appointment.pk)

    logger.info('reminder check completed: %s', report.as_dict())
    return report


def send_test_reminder(appointment_id: int) -> dict[str, dict[str, bool]]:
    """Send the 24-hour reminder to both parties now, leaving reminder state untouched.

    Raises ``Appointment.DoesNotExist`` for an unknown id.
    """
    appointment = Appointment.objects.select_related('patient', 'doctor').get(pk=appointment_id)
    window = get_window('twentyFourHours')
    participants = resolve_participants(appointment)
    results = {
        role: send_reminder(appointment, role, window, participants=participants)
        for role, _ in _SUB_FLAGS
    }
    logger.info('test reminder for appointment %s: %s', appointment.pk, results)
    return results
