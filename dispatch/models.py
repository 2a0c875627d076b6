"""
Database models for the ambulance dispatch backend.

These models capture the parties of an emergency transport (requesters,
hospitals and drivers), the emergency request itself and the driver
assignment that carries it out.  Primary keys are UUIDs so identifiers
can be handed to clients without leaking row counts.
"""
from __future__ import annotations

import uuid
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q


class User(AbstractUser):
    """Account with a dispatch role.

    A ``hospital`` or ``driver`` account owns exactly one
    :class:`Hospital` or :class:`Driver` profile; ``user`` accounts raise
    emergency requests.
    """
    ROLE_USER = 'user'
    ROLE_HOSPITAL = 'hospital'
    ROLE_DRIVER = 'driver'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_USER, 'User'),
        (ROLE_HOSPITAL, 'Hospital'),
        (ROLE_DRIVER, 'Driver'),
        (ROLE_ADMIN, 'Administrator'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_USER, db_index=True)
    phone = models.CharField(max_length=20, blank=True)

    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Hospital(models.Model):
    """A receiving hospital.

    Hospitals without coordinates are kept but never offered to the
    matcher.  ``max_capacity`` is informational: the number of requests
    currently bound to the hospital is reported next to it but does not
    block acceptance.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='hospital')
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    max_capacity = models.PositiveIntegerField(default=10)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(max_capacity__gt=0), name='hospital_capacity_positive'),
        ]

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class Driver(models.Model):
    """An ambulance driver.

    ``is_available`` flips to False when an assignment is created and back
    to True when it completes; the driver can also toggle it while idle.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver')
    license_number = models.CharField(max_length=100, unique=True)
    vehicle_registration = models.CharField(max_length=100, blank=True)
    is_approved = models.BooleanField(default=False, db_index=True)
    approved_by = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='approved_drivers'
    )
    is_available = models.BooleanField(default=True, db_index=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"driver {self.user.username} ({self.id})"


class EmergencyRequest(models.Model):
    """A single incident requiring transport.

    Status only moves forward: pending -> accepted -> assigned ->
    in_progress -> completed, with cancelled reachable from pending and
    accepted.  ``hospital`` stays null while the request is pending.
    """
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_ASSIGNED = 'assigned'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    # Requests that count towards a hospital's load.
    ACTIVE_STATUSES = (STATUS_ACCEPTED, STATUS_ASSIGNED, STATUS_IN_PROGRESS)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)
    CANCELLABLE_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    requester = models.ForeignKey(User, on_delete=models.CASCADE, related_name='emergency_requests')
    emergency_type = models.CharField(max_length=100, default='Medical Emergency')
    pickup_latitude = models.FloatField()
    pickup_longitude = models.FloatField()
    pickup_address = models.TextField()
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.PROTECT, related_name='requests'
    )
    accepted_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['requester', 'created_at'], name='dispatch_em_request_5b1f2e_idx'),
            models.Index(fields=['hospital', 'status'], name='dispatch_em_hospita_0c7d41_idx'),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def __str__(self) -> str:
        return f"request {self.id} [{self.status}]"


class Assignment(models.Model):
    """Binding of one driver to one request's transport task.

    The status chain is strictly assigned -> en_route -> arrived ->
    completed; each step stamps its own timestamp once.
    """
    STATUS_ASSIGNED = 'assigned'
    STATUS_EN_ROUTE = 'en_route'
    STATUS_ARRIVED = 'arrived'
    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_ASSIGNED, 'Assigned'),
        (STATUS_EN_ROUTE, 'En route'),
        (STATUS_ARRIVED, 'Arrived'),
        (STATUS_COMPLETED, 'Completed'),
    ]
    ACTIVE_STATUSES = (STATUS_ASSIGNED, STATUS_EN_ROUTE, STATUS_ARRIVED)
    NEXT_STATUS = {
        STATUS_ASSIGNED: STATUS_EN_ROUTE,
        STATUS_EN_ROUTE: STATUS_ARRIVED,
        STATUS_ARRIVED: STATUS_COMPLETED,
    }
    TIMESTAMP_FIELDS = {
        STATUS_EN_ROUTE: 'en_route_at',
        STATUS_ARRIVED: 'arrived_at',
        STATUS_COMPLETED: 'completed_at',
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    request = models.ForeignKey(EmergencyRequest, on_delete=models.CASCADE, related_name='assignments')
    driver = models.ForeignKey(Driver, on_delete=models.PROTECT, related_name='assignments')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ASSIGNED, db_index=True)
    assigned_at = models.DateTimeField()
    en_route_at = models.DateTimeField(null=True, blank=True)
    arrived_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['driver', 'assigned_at'], name='dispatch_as_driver__9e4a7c_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['request'],
                condition=Q(status__in=['assigned', 'en_route', 'arrived']),
                name='one_active_assignment_per_request',
            ),
            models.UniqueConstraint(
                fields=['driver'],
                condition=Q(status__in=['assigned', 'en_route', 'arrived']),
                name='one_active_assignment_per_driver',
            ),
        ]

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES

    def __str__(self) -> str:
        return f"assignment {self.id} driver={self.driver_id} [{self.status}]"


class AuditEvent(models.Model):
    """One row per state transition performed by the dispatch engine."""
    actor = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='dispatch_au_action_3f8e21_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='dispatch_au_object__a6d0b5_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}/{self.object_id}@{self.created_at:%F %T}"
