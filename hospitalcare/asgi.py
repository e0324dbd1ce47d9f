"""
ASGI config for the HospitalCare project.

HTTP only; see ``wsgi.py`` for why the reminder scheduler lives elsewhere.
"""
import os

from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospitalcare.settings")

application = get_asgi_application()
