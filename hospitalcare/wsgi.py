"""
WSGI config for the HospitalCare project.

It exposes the WSGI callable as a module-level variable named ``application``.
The reminder scheduler is not started here; it runs in its own process
(``manage.py run_reminders``) so that every web worker does not scan.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

# Set the default settings module for the 'django' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'hospitalcare.settings')

# Obtain the WSGI application for use by the server
application = get_wsgi_application()
