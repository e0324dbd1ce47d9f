import signal
import threading

from django.core.management.base import BaseCommand

from clinic.services.reminders import scan_due_reminders
from clinic.services.scheduler import ReminderScheduler


class Command(BaseCommand):
    help = "Run the appointment reminder scheduler (or a single scan with --once)."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Run one scan and exit")
        parser.add_argument("--interval", type=int, default=None,
                            help="Minutes between scans (default: REMINDER_INTERVAL_MINUTES)")

    def handle(self, *args, **opts):
        if opts["once"]:
            report = scan_due_reminders()
            self.stdout.write(self.style.SUCCESS(f"Reminder scan finished: {report.as_dict()}"))
            return

        stop = threading.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, lambda *_: stop.set())

        scheduler = ReminderScheduler(interval_minutes=opts["interval"])
        scheduler.start()
        self.stdout.write(self.style.SUCCESS(
            f"Reminder scheduler running every {scheduler.interval_minutes} minutes; Ctrl+C to stop."))
        try:
            stop.wait()
        finally:
            scheduler.stop()
        self.stdout.write(self.style.SUCCESS("Reminder scheduler stopped."))
