from django.conf import settings
from django.core.cache import cache
from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.services.doctors import doctor_cache_key, invalidate_doctor_cache, list_doctors


class Command(BaseCommand):
    help = "Invalidate and re-warm the approved-doctor directory cache."

    def handle(self, *args, **options):
        now = timezone.now()
        invalidate_doctor_cache()
        data, total = list_doctors()
        key = doctor_cache_key()
        cache.set(key, {'ok': True, 'data': data, 'pagination': {'total': total, 'page': 1, 'pageSize': total}},
                  settings.DOCTOR_LIST_CACHE_SECONDS)
        self.stdout.write(self.style.SUCCESS(f"Refreshed {key} ({total} doctors) at {now}"))
