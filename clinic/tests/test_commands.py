import pytest
from django.contrib.auth import authenticate
from django.core import mail
from django.core.cache import cache
from django.core.management import call_command

from clinic.models import Appointment, User
from clinic.services.doctors import doctor_cache_key
from clinic.services.reminders import scan_due_reminders

pytestmark = pytest.mark.django_db


def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users')
    User.objects.filter(username='doctor1').update(status='pending', role='patient')
    call_command('ensure_test_users')

    assert User.objects.filter(username__in=['admin1', 'doctor1', 'patient1']).count() == 3
    doc = User.objects.get(username='doctor1')
    assert doc.role == 'doctor' and doc.status == 'approved'
    assert doc.email == 'doctor1@example.com'
    assert authenticate(username='patient1', password='Passw0rd!123') is not None


def test_refresh_caches_warms_doctor_directory(doctor):
    call_command('refresh_caches')
    cached = cache.get(doctor_cache_key())
    assert cached['ok'] is True
    assert [d['id'] for d in cached['data']] == [doctor.id]


def test_populate_data_gives_the_scanner_work():
    call_command('populate_data')
    call_command('populate_data', '--clear')

    assert User.objects.filter(username__startswith='demo_doctor', status='pending').count() == 1
    assert Appointment.objects.filter(doctor__status='pending').count() == 0
    assert set(Appointment.objects.values_list('status', flat=True)) == {
        'pending', 'approved', 'rejected', 'cancelled', 'completed'}

    report = scan_due_reminders()
    assert report.errors == 0
    assert report.updated >= 1
    assert len(mail.outbox) >= 2
