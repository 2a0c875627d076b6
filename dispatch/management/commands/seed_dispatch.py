"""
Management command to seed demo dispatch data.

Creates a requester, a few hospitals around San Francisco with their
accounts, and approved and pending drivers.  Safe to run repeatedly:
existing rows are corrected in place rather than duplicated.
"""
from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction

from dispatch.models import Driver, Hospital, User

HOSPITALS = [
    ("hospital1", "SF General Hospital", "1001 Potrero Ave, San Francisco", 37.7558, -122.4046, 20),
    ("hospital2", "UCSF Medical Center", "505 Parnassus Ave, San Francisco", 37.7631, -122.4580, 15),
    ("hospital3", "CPMC Van Ness", "1101 Van Ness Ave, San Francisco", 37.7862, -122.4208, 10),
]

DRIVERS = [
    ("driver1", "CA-DL-1001", "AMB-001", True),
    ("driver2", "CA-DL-1002", "AMB-002", True),
    ("driver3", "CA-DL-1003", "AMB-003", False),
]


class Command(BaseCommand):
    help = "Seed demo users, hospitals and drivers (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="dispatch123", help="password set on every seeded account")

    def _user(self, username, role, password):
        u, created = User.objects.get_or_create(
            username=username,
            defaults={"role": role, "password": make_password(password), "is_active": True},
        )
        if not created:
            u.password = make_password(password)
            u.role = role
            u.is_active = True
            u.save(update_fields=["password", "role", "is_active"])
        return u

    @transaction.atomic
    def handle(self, *args, **opts):
        password = opts["password"]
        self._user("user1", User.ROLE_USER, password)
        self.stdout.write(self.style.SUCCESS("ok: user1 (user)"))

        first_hospital = None
        for username, name, address, lat, lon, capacity in HOSPITALS:
            u = self._user(username, User.ROLE_HOSPITAL, password)
            hospital, _ = Hospital.objects.update_or_create(
                user=u,
                defaults={"name": name, "address": address, "latitude": lat, "longitude": lon,
                          "max_capacity": capacity, "is_active": True},
            )
            first_hospital = first_hospital or hospital
            self.stdout.write(self.style.SUCCESS(f"ok: {username} -> {name}"))

        for username, license_number, vehicle, approved in DRIVERS:
            u = self._user(username, User.ROLE_DRIVER, password)
            Driver.objects.update_or_create(
                user=u,
                defaults={"license_number": license_number, "vehicle_registration": vehicle,
                          "is_approved": approved, "approved_by": first_hospital if approved else None,
                          "is_active": True},
            )
            state = "approved" if approved else "pending approval"
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({state})"))

        self.stdout.write(self.style.SUCCESS("Dispatch demo data seeded."))
