# clinic/management/commands/ensure_test_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from clinic.models import User

TEST_SET = [
    ("admin1", "admin", {}),
    ("doctor1", "doctor", {"specialization": "Cardiology", "experience": 8,
                           "education": "MBBS, FCPS", "license_id": "PMDC-TEST-1"}),
    ("patient1", "patient", {}),
]


class Command(BaseCommand):
    help = "Ensure test users exist and password=Passw0rd!123 (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--email-domain", default="example.com",
                            help="Domain for the generated email addresses")

    def handle(self, *args, **opts):
        password = make_password("Passw0rd!123")
        for username, role, profile in TEST_SET:
            defaults = {"role": role, "password": password, "is_active": True,
                        "status": User.STATUS_APPROVED,
                        "email": f"{username}@{opts['email_domain']}", **profile}
            u, created = User.objects.get_or_create(username=username, defaults=defaults)
            if not created:
                # reset password, role and moderation status
                for k, v in defaults.items():
                    setattr(u, k, v)
                u.save(update_fields=list(defaults))
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All test users ensured."))
