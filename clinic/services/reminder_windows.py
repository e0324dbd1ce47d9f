"""
Reminder windows.

Each window is a row in ``REMINDER_WINDOWS``: a stable key used in the
appointment's ``reminders`` structure, a human label and an inclusive
range of minutes-before-start in which the window is due.  The ranges
are wider than a single point so that a scan running every few minutes
cannot step over a window.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ReminderWindow:
    key: str
    label: str
    lower_minutes: float
    upper_minutes: float

    def is_due(self, minutes_remaining: float) -> bool:
        return self.lower_minutes <= minutes_remaining <= self.upper_minutes


REMINDER_WINDOWS: tuple[ReminderWindow, ...] = (
    ReminderWindow('twentyFourHours', '24 hours', 23 * 60, 24 * 60),
    ReminderWindow('twoHours', '2 hours', 90, 120),
    ReminderWindow('fifteenMinutes', '15 minutes', 10, 15),
)

_BY_KEY = {w.key: w for w in REMINDER_WINDOWS}


def get_window(key: str) -> ReminderWindow:
    try:
        return _BY_KEY[key]
    except KeyError:
        raise ValueError(f'unknown reminder window: {key}') from None


def due_windows(minutes_remaining: float) -> list[ReminderWindow]:
    """Windows whose range contains ``minutes_remaining``, in table order."""
    return [w for w in REMINDER_WINDOWS if w.is_due(minutes_remaining)]


def empty_window_state() -> dict:
    return {'sent': False, 'sentAt': None, 'patientSent': False, 'doctorSent': False}


def default_reminders() -> dict:
    return {w.key: empty_window_state() for w in REMINDER_WINDOWS}


def normalise_reminders(reminders: Optional[dict]) -> dict:
    """Return a copy of ``reminders`` with every known window and flag present.

    Rows written before a window existed (or with a null column) come back
    with the missing entries filled with unsent state; unknown keys are kept.
    """
    result = dict(reminders or {})
    for w in REMINDER_WINDOWS:
        state = empty_window_state()
        state.update(result.get(w.key) or {})
        result[w.key] = state
    return result
