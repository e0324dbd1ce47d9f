import datetime

import pytest
from django.core.cache import cache
from django.utils import timezone

from clinic.models import Appointment, User


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttling counters and the doctor directory live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def _notify_defaults(settings):
    settings.NOTIFY_CHANNELS = ['email']
    settings.NOTIFY_USE_AI = False
    settings.TWILIO_ACCOUNT_SID = ''
    settings.TWILIO_AUTH_TOKEN = ''


@pytest.fixture
def now():
    """A fixed, minute-aligned 'now' in the project time zone."""
    return timezone.localtime(timezone.now()).replace(second=0, microsecond=0)


@pytest.fixture
def patient(db):
    return User.objects.create_user(
        username='ayesha', password='Passw0rd!123', role=User.ROLE_PATIENT,
        first_name='Ayesha', last_name='Khan', email='ayesha@example.com', phone='0300-1234567',
    )


@pytest.fixture
def doctor(db):
    return User.objects.create_user(
        username='drsmith', password='Passw0rd!123', role=User.ROLE_DOCTOR,
        first_name='John', last_name='Smith', email='smith@example.com', phone='+923331112222',
        specialization='Cardiology', experience=10, education='MBBS', license_id='PMDC-1',
    )


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', password='Passw0rd!123', role=User.ROLE_ADMIN,
                                    email='admin@example.com')


def make_appointment(patient, doctor, start: datetime.datetime, status=Appointment.STATUS_APPROVED, **kw):
    start = timezone.localtime(start)
    end = start + datetime.timedelta(minutes=30)
    return Appointment.objects.create(
        patient=patient, doctor=doctor, appointment_date=start.date(),
        start_time=start.strftime('%H:%M'), end_time=end.strftime('%H:%M'), status=status, **kw,
    )


@pytest.fixture
def appointment_factory(patient, doctor):
    def factory(start, **kw):
        return make_appointment(patient, doctor, start, **kw)
    return factory
