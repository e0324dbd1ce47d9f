"""
Notification dispatch.

``notify`` renders one message for one party of a case (an appointment
or a second-opinion request) and hands it to every active channel,
returning ``{channel_name: delivered}``.  Nothing here writes to the
database: recording what was delivered is the caller's job.  Errors
never propagate past this module.
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from django.template.loader import render_to_string
from django.utils import timezone

from clinic.models import Appointment, SecondOpinionRequest
from clinic.services.channels import Channel, active_channels
from clinic.services.formatter import (
    KIND_REMINDER, MessageFields, format_date, format_time_range, render_message, render_subject,
)
from clinic.services.recipients import Participants, resolve_participants
from clinic.services.reminder_windows import ReminderWindow

logger = logging.getLogger(__name__)

Case = Union[Appointment, SecondOpinionRequest]


def _schedule(case: Case) -> tuple[str, str]:
    """Date and time shown in the message: the slot, or when the case last moved."""
    if isinstance(case, Appointment):
        return format_date(case.appointment_date), format_time_range(case.start_time, case.end_time)
    moment = timezone.localtime(case.completed_at or case.updated_at or timezone.now())
    return format_date(moment.date()), f'{moment:%H:%M}'


def build_fields(case: Case, participants: Participants, role: str,
                 window: Optional[ReminderWindow] = None, extra: Optional[dict] = None) -> MessageFields:
    recipient = participants.recipient_for(role)
    counterpart = participants.counterpart_for(role)
    date, time = _schedule(case)
    return MessageFields(
        recipient_name=recipient.name,
        recipient_role=role,
        counterpart_name=counterpart.name,
        date=date,
        time=time,
        specialization=participants.doctor.specialization,
        notes=getattr(case, 'notes', '') or '',
        lead_time=window.label if window else '',
        **(extra or {}),
    )


def delivered(results: dict[str, bool]) -> bool:
    return any(results.values())


def notify(case: Case, role: str, kind: str, window: Optional[ReminderWindow] = None,
           extra: Optional[dict] = None, participants: Optional[Participants] = None,
           channels: Optional[list[Channel]] = None) -> dict[str, bool]:
    label = f'{case._meta.model_name} {case.pk}'
    try:
        channels = channels if channels is not None else active_channels()
    except Exception:
        logger.exception('could not build notification channels')
        return {}
    results = {c.name: False for c in channels}
    try:
        participants = participants or resolve_participants(case)
        recipient = participants.recipient_for(role)
        fields = build_fields(case, participants, role, window, extra)
        subject = render_subject(kind, fields)
        body = render_message(kind, fields)
    except Exception:
        logger.exception('could not prepare %s notification for %s (%s)', kind, label, role)
        return results
    try:
        html = render_to_string('clinic/emails/notification.html', {'kind': kind, 'fields': fields, 'body': body})
    except Exception as e:
        logger.warning('html rendering failed for %s, sending text only: %s', label, e)
        html = None
    for channel in channels:
        try:
            results[channel.name] = bool(channel.send(recipient, subject, body, html=html))
        except Exception:
            logger.exception('%s channel raised for %s (%s)', channel.name, label, role)
            results[channel.name] = False
    return results


def send_reminder(appointment: Appointment, role: str, window: ReminderWindow,
                  participants: Optional[Participants] = None) -> dict[str, bool]:
    return notify(appointment, role, KIND_REMINDER, window=window, participants=participants)
