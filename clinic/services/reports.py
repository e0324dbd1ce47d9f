from django.contrib.auth import get_user_model
from django.db.models import Count

from clinic.models import Appointment
from clinic.services.reminder_windows import REMINDER_WINDOWS

User = get_user_model()


def appointment_status_counts() -> dict:
    counts = {s: 0 for s, _ in Appointment.STATUS_CHOICES}
    for row in Appointment.objects.values('status').annotate(n=Count('id')):
        counts[row['status']] = row['n']
    counts['total'] = sum(counts.values())
    return counts


def reminder_sent_counts() -> dict:
    return {
        w.key: Appointment.objects.filter(**{f'reminders__{w.key}__sent': True}).count()
        for w in REMINDER_WINDOWS
    }


def top_doctors(limit: int = 5) -> list[dict]:
    rows = (Appointment.objects.values('doctor_id')
            .annotate(n=Count('id'))
            .order_by('-n', 'doctor_id')[:limit])
    names = {u.id: u for u in User.objects.filter(id__in=[r['doctor_id'] for r in rows])}
    return [{
        'doctorId': r['doctor_id'],
        'name': names[r['doctor_id']].display_name if r['doctor_id'] in names else None,
        'specialization': names[r['doctor_id']].specialization if r['doctor_id'] in names else None,
        'appointments': r['n'],
    } for r in rows]


def user_counts() -> dict:
    doctors = User.objects.filter(role=User.ROLE_DOCTOR)
    return {
        'patients': User.objects.filter(role=User.ROLE_PATIENT).count(),
        'doctors': doctors.filter(status=User.STATUS_APPROVED).count(),
        'pendingDoctors': doctors.filter(status=User.STATUS_PENDING).count(),
    }


def appointment_report() -> dict:
    return {
        'appointments': appointment_status_counts(),
        'remindersSent': reminder_sent_counts(),
        'topDoctors': top_doctors(),
        'users': user_counts(),
    }
