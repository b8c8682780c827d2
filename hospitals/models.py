"""
Database models for the referral network.

These models capture hospitals, their published resource snapshot,
referrals (one canonical record plus one mirror per participating
hospital) and the per-hospital notification inbox.  Field names are
snake_case here; the API layer renders the camelCase names the
front-end has always used (``fromHospitalId``, ``resourcesRequested``
and so on).
"""
from __future__ import annotations

import uuid

from django.contrib.auth.models import AbstractUser
from django.db import models


def generate_referral_id() -> str:
    return uuid.uuid4().hex[:20]


class Hospital(models.Model):
    """A registered hospital.

    The primary key is the hospital's registration number, entered once at
    registration time and used everywhere as the hospital identifier.
    """
    id = models.CharField(
        max_length=64,
        primary_key=True,
        help_text="Registration number, used as the hospital identifier",
    )
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=100, blank=True)
    location = models.CharField(max_length=255, blank=True, db_index=True)
    contact = models.CharField(max_length=64, blank=True)
    email = models.EmailField(blank=True, db_index=True)
    website = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class User(AbstractUser):
    """Hospital staff account.

    ``hospital`` is the user→hospital mapping: it resolves an authenticated
    identity to the hospital the session acts as.  Users without a
    hospital must register or link one before using hospital-scoped APIs.
    """
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff', db_index=True
    )
    hospital_bind_time = models.DateTimeField(null=True, blank=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.hospital_id or '-'})"


class ResourceSnapshot(models.Model):
    """The ``resourceInfo`` document of one hospital.

    ``data`` holds the document exactly as it was written, including the
    legacy bare-number form of ``oxygenCylinders``; interpretation lives in
    :mod:`hospitals.services.resources`.
    """
    hospital = models.OneToOneField(Hospital, on_delete=models.CASCADE, related_name='resources', primary_key=True)
    data = models.JSONField(default=dict)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"resources({self.hospital_id})"


class Referral(models.Model):
    """Canonical referral record.

    Identity fields never change after creation.  ``status`` moves once,
    from ``pending`` to ``accepted`` or ``rejected``.
    """
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'pending'),
        (STATUS_ACCEPTED, 'accepted'),
        (STATUS_REJECTED, 'rejected'),
    )
    TERMINAL_STATUSES = (STATUS_ACCEPTED, STATUS_REJECTED)

    referral_id = models.CharField(max_length=32, primary_key=True, default=generate_referral_id, editable=False)
    from_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='outgoing_referrals')
    from_hospital_name = models.CharField(max_length=255)
    to_hospital = models.ForeignKey(Hospital, on_delete=models.PROTECT, related_name='incoming_referrals')
    to_hospital_name = models.CharField(max_length=255)
    required_specialist = models.CharField(max_length=255)
    resources_requested = models.JSONField(default=dict)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        indexes = [
            models.Index(fields=['from_hospital', 'created_at']),
            models.Index(fields=['to_hospital', 'status', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"referral {self.referral_id} {self.from_hospital_id}->{self.to_hospital_id} [{self.status}]"


class ReferralMirror(models.Model):
    """Per-hospital copy of a referral.

    A mirror is a plain denormalised copy; it carries no foreign key to the
    canonical row so that it can be rebuilt from it at any time.
    """
    DIRECTION_INCOMING = 'incoming'
    DIRECTION_OUTGOING = 'outgoing'
    DIRECTION_CHOICES = ((DIRECTION_INCOMING, 'incoming'), (DIRECTION_OUTGOING, 'outgoing'))

    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='referral_mirrors')
    referral_id = models.CharField(max_length=32)
    direction = models.CharField(max_length=16, choices=DIRECTION_CHOICES)
    mirror = models.BooleanField(default=True)

    from_hospital_id = models.CharField(max_length=64)
    from_hospital_name = models.CharField(max_length=255)
    to_hospital_id = models.CharField(max_length=64)
    to_hospital_name = models.CharField(max_length=255)
    required_specialist = models.CharField(max_length=255)
    resources_requested = models.JSONField(default=dict)
    status = models.CharField(max_length=16, choices=Referral.STATUS_CHOICES, default=Referral.STATUS_PENDING)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        unique_together = [('hospital', 'referral_id')]
        indexes = [
            models.Index(fields=['hospital', 'direction', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"mirror {self.referral_id}@{self.hospital_id} ({self.direction}, {self.status})"


class Notification(models.Model):
    """One entry in a hospital's inbox.  Only ``read`` is ever updated."""
    TYPE_REFERRAL_REQUEST = 'referral-request'
    TYPE_REFERRAL_STATUS = 'referral-status-update'
    TYPE_CRITICAL = 'critical'
    TYPE_WARNING = 'warning'
    TYPE_DEFAULT = 'default'
    TYPE_CHOICES = (
        (TYPE_REFERRAL_REQUEST, 'referral-request'),
        (TYPE_REFERRAL_STATUS, 'referral-status-update'),
        (TYPE_CRITICAL, 'critical'),
        (TYPE_WARNING, 'warning'),
        (TYPE_DEFAULT, 'default'),
    )

    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='notifications')
    referral_id = models.CharField(max_length=32, null=True, blank=True, db_index=True)
    type = models.CharField(max_length=32, choices=TYPE_CHOICES, default=TYPE_DEFAULT)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    # Referral status echoed on status-update entries
    status = models.CharField(max_length=16, blank=True, null=True)
    read = models.BooleanField(default=False)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['hospital', 'timestamp']),
            models.Index(fields=['hospital', 'referral_id']),
        ]

    def __str__(self) -> str:
        return f"notif {self.id} {self.type} -> {self.hospital_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['object_type', 'object_id', 'created_at']),
        ]
