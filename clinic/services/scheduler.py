"""
Reminder scheduler.

APScheduler-based background scheduler that runs the reminder scan on a
fixed interval, with one immediate run at start.  The handle is owned by
whatever process starts it (see the ``run_reminders`` management command)
and must be stopped on shutdown.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore[import-not-found]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-not-found]
from django.conf import settings
from django.db import close_old_connections
from django.utils import timezone

from clinic.services.reminder_windows import REMINDER_WINDOWS
from clinic.services.reminders import scan_due_reminders

logger = logging.getLogger(__name__)

JOB_ID = 'appointment_reminders'


def run_scan_job(scan: Callable = scan_due_reminders) -> None:
    """One scheduled tick; failures are logged and the next tick still runs."""
    close_old_connections()
    try:
        scan()
    except Exception:
        logger.exception('reminder scan failed')
    finally:
        close_old_connections()


class ReminderScheduler:
    """Runs the reminder scan every ``interval_minutes``.

    A tick that is still running when the next one is due causes that
    next tick to be skipped (``max_instances=1``); missed ticks are
    collapsed into one (``coalesce=True``).
    """

    def __init__(self, interval_minutes: Optional[int] = None, scan: Callable = scan_due_reminders):
        self.interval_minutes = interval_minutes or settings.REMINDER_INTERVAL_MINUTES
        self.scan = scan
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self) -> None:
        if self.running:
            logger.warning('ReminderScheduler already running')
            return
        scheduler = BackgroundScheduler(timezone=settings.TIME_ZONE)
        scheduler.add_job(
            run_scan_job,
            IntervalTrigger(minutes=self.interval_minutes),
            args=[self.scan],
            id=JOB_ID,
            name='Appointment reminders',
            next_run_time=timezone.now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info('ReminderScheduler started, scanning every %s minutes (windows: %s)',
                    self.interval_minutes, ', '.join(w.label for w in REMINDER_WINDOWS))

    def stop(self, wait: bool = True) -> None:
        if not self.running:
            return
        self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info('ReminderScheduler stopped')
