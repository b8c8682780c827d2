from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.utils import timezone

from hospitals.models import Hospital, ResourceSnapshot, User
from hospitals.services.resources import BLOOD_GROUPS, default_document

# (registration number, name, location, staff username, resources)
DEMO_SET = [
    ("REG-CITY-001", "City General Hospital", "Central District", "citystaff", {
        "beds": {"total": 120, "occupied": 80},
        "icuBeds": {"total": 20, "occupied": 12},
        "ventilators": {"total": 15, "occupied": 6},
        "oxygenCylinders": {"available": 60},
        "ambulances": {"total": 8, "active": 2, "maintenance": 1},
        "bloodBank": {g: 40 for g in BLOOD_GROUPS},
    }),
    ("REG-VALLEY-002", "Valley Care Hospital", "North Valley", "valleystaff", {
        "beds": {"total": 40, "occupied": 35},
        "icuBeds": {"total": 6, "occupied": 5},
        "ventilators": {"total": 4, "occupied": 3},
        "oxygenCylinders": 12,
        "ambulances": {"total": 3, "active": 1, "maintenance": 0},
        "bloodBank": {g: 10 for g in BLOOD_GROUPS},
    }),
]


class Command(BaseCommand):
    help = "Ensure demo hospitals, their staff users (password=123456) and resources exist (idempotent)."

    def handle(self, *args, **opts):
        for reg_no, name, location, username, resources in DEMO_SET:
            hospital, _ = Hospital.objects.get_or_create(id=reg_no, defaults={"name": name, "location": location})
            snapshot, created = ResourceSnapshot.objects.get_or_create(
                hospital=hospital, defaults={"data": {**default_document(), **resources}},
            )
            u, _ = User.objects.get_or_create(
                username=username,
                defaults={"password": make_password("123456"), "is_active": True},
            )
            # re-bind and reset password for the demo account
            u.password = make_password("123456")
            u.is_active = True
            u.hospital = hospital
            u.hospital_bind_time = u.hospital_bind_time or timezone.now()
            u.save(update_fields=["password", "is_active", "hospital", "hospital_bind_time"])
            self.stdout.write(self.style.SUCCESS(
                f"ok: {reg_no} {name} (staff {username}, resources {'seeded' if created else 'kept'})"
            ))
        self.stdout.write(self.style.SUCCESS("All demo hospitals ensured."))
