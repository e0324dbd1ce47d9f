"""
Management command to populate the database with demo data.
"""
from datetime import timedelta
import random

from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.db import transaction
from django.utils import timezone

from clinic.models import Appointment, User

DEMO_PREFIX = 'demo_'
DEMO_PASSWORD = 'Passw0rd!123'

DOCTORS = [
    ('Ahmed', 'Raza', 'Cardiology', 12, 'MBBS, FCPS (Cardiology)', User.STATUS_APPROVED),
    ('Fatima', 'Noor', 'Dermatology', 7, 'MBBS, MCPS', User.STATUS_APPROVED),
    ('Usman', 'Tariq', 'Orthopedics', 15, 'MBBS, FRCS', User.STATUS_APPROVED),
    ('Sana', 'Iqbal', 'Pediatrics', 3, 'MBBS', User.STATUS_PENDING),
]

PATIENTS = [
    ('Ayesha', 'Khan', '03001234567'),
    ('Bilal', 'Hussain', '03011234567'),
    ('Hira', 'Shah', '03021234567'),
    ('Kamran', 'Ali', '03031234567'),
]


class Command(BaseCommand):
    help = 'Populate database with demo doctors, patients and appointments'

    def add_arguments(self, parser):
        parser.add_argument('--clear', action='store_true', help='Delete previously seeded demo users first')
        parser.add_argument('--seed', type=int, default=42, help='Random seed')

    @transaction.atomic
    def handle(self, *args, **options):
        random.seed(options['seed'])
        if options['clear']:
            deleted, _ = User.objects.filter(username__startswith=DEMO_PREFIX).delete()
            self.stdout.write(f'Removed {deleted} demo rows')

        self.stdout.write('Creating demo data...')
        password = make_password(DEMO_PASSWORD)
        doctors = self.create_doctors(password)
        patients = self.create_patients(password)
        appointments = self.create_appointments(patients, [d for d in doctors if d.status == User.STATUS_APPROVED])

        self.stdout.write(self.style.SUCCESS(
            f'Demo data ready: {len(doctors)} doctors, {len(patients)} patients, '
            f'{len(appointments)} appointments (password {DEMO_PASSWORD})'))

    def create_doctors(self, password):
        doctors = []
        for i, (first, last, spec, years, edu, status) in enumerate(DOCTORS, start=1):
            u, _ = User.objects.update_or_create(
                username=f'{DEMO_PREFIX}doctor{i}',
                defaults={
                    'first_name': first, 'last_name': last, 'email': f'{DEMO_PREFIX}doctor{i}@example.com',
                    'phone': f'0333{i:07d}', 'role': User.ROLE_DOCTOR, 'status': status,
                    'specialization': spec, 'experience': years, 'education': edu,
                    'license_id': f'PMDC-DEMO-{i:04d}', 'password': password, 'is_active': True,
                },
            )
            doctors.append(u)
        return doctors

    def create_patients(self, password):
        patients = []
        for i, (first, last, phone) in enumerate(PATIENTS, start=1):
            u, _ = User.objects.update_or_create(
                username=f'{DEMO_PREFIX}patient{i}',
                defaults={
                    'first_name': first, 'last_name': last, 'email': f'{DEMO_PREFIX}patient{i}@example.com',
                    'phone': phone, 'role': User.ROLE_PATIENT, 'password': password, 'is_active': True,
                },
            )
            patients.append(u)
        return patients

    def create_appointments(self, patients, doctors):
        now = timezone.localtime().replace(second=0, microsecond=0)
        # (offset from now, status): two land inside reminder windows
        plan = [
            (timedelta(hours=23, minutes=30), Appointment.STATUS_APPROVED),
            (timedelta(hours=1, minutes=45), Appointment.STATUS_APPROVED),
            (timedelta(days=2), Appointment.STATUS_PENDING),
            (timedelta(days=3), Appointment.STATUS_PENDING),
            (timedelta(days=4), Appointment.STATUS_REJECTED),
            (timedelta(days=5), Appointment.STATUS_CANCELLED),
            (-timedelta(days=2), Appointment.STATUS_COMPLETED),
        ]
        created = []
        for offset, status in plan:
            start = now + offset
            appt = Appointment.objects.create(
                patient=random.choice(patients),
                doctor=random.choice(doctors),
                appointment_date=start.date(),
                start_time=start.strftime('%H:%M'),
                end_time=(start + timedelta(minutes=30)).strftime('%H:%M'),
                status=status,
                request_message='Demo appointment request',
                approved_at=now if status in (Appointment.STATUS_APPROVED, Appointment.STATUS_COMPLETED) else None,
                rejection_reason='Doctor unavailable' if status == Appointment.STATUS_REJECTED else '',
            )
            created.append(appt)
        return created
