"""
Notification message formatting.

``render_message`` is the single entry point.  It always has the
deterministic template path available; when ``NOTIFY_USE_AI`` is set it
first asks an OpenAI-compatible chat-completions endpoint for a more
personal wording and falls back to the template on any failure.  The
caller always receives a non-empty string.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

KIND_APPROVAL = 'approval'
KIND_REMINDER = 'reminder'
KIND_SECOND_OPINION_READY = 'second_opinion_ready'
KINDS = (KIND_APPROVAL, KIND_REMINDER, KIND_SECOND_OPINION_READY)

BRAND = 'HospitalCare System'


@dataclass(frozen=True)
class MessageFields:
    recipient_name: str
    recipient_role: str
    counterpart_name: str
    date: str
    time: str
    specialization: str = ''
    notes: str = ''
    lead_time: str = ''
    summary: str = ''

    @property
    def is_patient(self) -> bool:
        return self.recipient_role == 'patient'

    @property
    def greeting_name(self) -> str:
        return self.recipient_name if self.is_patient else f'Dr. {self.recipient_name}'

    @property
    def counterpart_label(self) -> str:
        return f'Dr. {self.counterpart_name}' if self.is_patient else f'patient {self.counterpart_name}'


def format_date(value: datetime.date) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def format_time_range(start: str, end: str = '') -> str:
    return f'{start} - {end}' if end else start


# ---------------------------------------------------------------------------
# Template path
# ---------------------------------------------------------------------------

def _approval_template(f: MessageFields) -> str:
    lines = [
        BRAND,
        '',
        'Appointment Approved',
        '',
        f'Dear {f.greeting_name},',
        '',
        f'Your appointment with {f.counterpart_label} has been approved.',
        '',
        f'Date: {f.date}',
        f'Time: {f.time}',
    ]
    if f.specialization:
        lines.append(f'Specialization: {f.specialization}')
    if f.notes:
        lines.append(f'Notes: {f.notes}')
    lines += ['', 'You will receive reminders before your appointment.', '', f'Thank you! - {BRAND}']
    return '\n'.join(lines)


def _reminder_template(f: MessageFields) -> str:
    heading = f'Appointment Reminder ({f.lead_time} before)' if f.lead_time else 'Appointment Reminder'
    lines = [
        BRAND,
        '',
        heading,
        '',
        f'Dear {f.greeting_name},',
        '',
        f'You have an appointment with {f.counterpart_label}.',
        '',
        f'Date: {f.date}',
        f'Time: {f.time}',
    ]
    if f.specialization and f.is_patient:
        lines.append(f'Specialization: {f.specialization}')
    if f.notes:
        lines.append(f'Notes: {f.notes}')
    closing = 'Please arrive 10 minutes early for check-in.' if f.is_patient else 'Please review the patient history before the appointment.'
    lines += ['', closing, '', f'Thank you! - {BRAND}']
    return '\n'.join(lines)


def _second_opinion_template(f: MessageFields) -> str:
    lines = [
        BRAND,
        '',
        'Second Opinion Ready',
        '',
        f'Dear {f.greeting_name},',
        '',
        f'{f.counterpart_label} has submitted a medical opinion for your case.',
    ]
    if f.summary:
        lines += ['', f'Summary: {f.summary}']
    lines += [
        '',
        f'Date: {f.date}',
        f'Time: {f.time}',
        '',
        'Please log in to view the complete second opinion.',
        '',
        f'Thank you! - {BRAND}',
    ]
    return '\n'.join(lines)


_TEMPLATES = {
    KIND_APPROVAL: _approval_template,
    KIND_REMINDER: _reminder_template,
    KIND_SECOND_OPINION_READY: _second_opinion_template,
}


def render_template(kind: str, fields: MessageFields) -> str:
    """Deterministic body for ``kind``; unknown kinds get a generic notice."""
    template = _TEMPLATES.get(kind)
    if template is None:
        return f'Notification from {BRAND} for {fields.recipient_name}: {fields.date} {fields.time}'
    return template(fields)


# ---------------------------------------------------------------------------
# Generative path
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = (
    "You are a professional healthcare communication assistant. Write clear, "
    "warm and concise appointment notifications in plain text. Always include "
    "the recipient's name, the date and the time exactly as given. Keep it under 150 words."
)

_KIND_INSTRUCTIONS = {
    KIND_APPROVAL: 'Tell the recipient their appointment has been approved and that reminders will follow.',
    KIND_REMINDER: 'Remind the recipient of the upcoming appointment.',
    KIND_SECOND_OPINION_READY: 'Tell the patient their second opinion is ready to view after logging in.',
}


def _generate(kind: str, fields: MessageFields) -> str:
    facts = [
        f'Recipient: {fields.greeting_name} ({fields.recipient_role})',
        f'Appointment with: {fields.counterpart_label}',
        f'Date: {fields.date}',
        f'Time: {fields.time}',
    ]
    if fields.specialization:
        facts.append(f'Specialization: {fields.specialization}')
    if fields.lead_time:
        facts.append(f'Time until appointment: {fields.lead_time}')
    if fields.notes:
        facts.append(f'Notes: {fields.notes}')
    if fields.summary:
        facts.append(f'Summary: {fields.summary}')
    prompt = _KIND_INSTRUCTIONS[kind] + '\n' + '\n'.join(facts)

    r = requests.post(
        settings.NOTIFY_AI_URL,
        headers={'Authorization': f'Bearer {settings.NOTIFY_AI_KEY}'},
        json={
            'model': settings.NOTIFY_AI_MODEL,
            'messages': [
                {'role': 'system', 'content': _SYSTEM_PROMPT},
                {'role': 'user', 'content': prompt},
            ],
            'max_tokens': 300,
            'temperature': 0.7,
        },
        timeout=settings.NOTIFY_AI_TIMEOUT,
    )
    r.raise_for_status()
    content = (r.json()['choices'][0]['message']['content'] or '').strip()
    if not content:
        raise ValueError('empty completion')
    return content


def render_message(kind: str, fields: MessageFields) -> str:
    if settings.NOTIFY_USE_AI and kind in _KIND_INSTRUCTIONS:
        try:
            return _generate(kind, fields)
        except Exception as e:
            logger.warning('AI message generation failed for %s, using template: %s', kind, e)
    try:
        return render_template(kind, fields)
    except Exception:
        logger.exception('template rendering failed for %s', kind)
        return f'Notification from {BRAND} for {fields.recipient_name}: {fields.date} {fields.time}'


def render_subject(kind: str, fields: MessageFields) -> str:
    if kind == KIND_REMINDER:
        who = f'Dr. {fields.counterpart_name}' if fields.is_patient else f'Patient: {fields.counterpart_name}'
        return f'Appointment Reminder - {who}'
    if kind == KIND_APPROVAL:
        return f'Appointment Approved - {BRAND}'
    if kind == KIND_SECOND_OPINION_READY:
        return f'Your Second Opinion is Ready - {BRAND}'
    return f'Notification - {BRAND}'
