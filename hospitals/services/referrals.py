"""
Referral lifecycle.

A referral is written once as a canonical :class:`~hospitals.models.Referral`
plus one :class:`~hospitals.models.ReferralMirror` in each participating
hospital's namespace.  It leaves ``pending`` exactly once:

* accept: receiver only; the canonical row is locked, its status checked,
  the resources allocated on the receiver's locked snapshot and the new
  status written to canonical then both mirrors, all in one transaction.
  The sender is notified afterwards and earlier inbox entries about the
  referral are marked read on both sides.
* reject: same, without touching resources.

Mirrors heal themselves on read: a hospital entitled to a referral whose
mirror is missing (or still shows ``pending`` after the canonical record
moved on) gets it rebuilt from the canonical row.

Every function takes the acting hospital id explicitly; nothing here reads
the session.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Tuple, Union

from django.db import transaction
from django.utils import timezone

from hospitals.exceptions import AccessDenied, InvalidTransition, NotFound, ValidationError
from hospitals.models import Hospital, Notification, Referral, ReferralMirror
from hospitals.services import notifications
from hospitals.services.audit import log_action
from hospitals.services.availability import is_empty_request, normalize_request
from hospitals.services.reservation import AllocationResult, apply_allocation
from hospitals.services.store import run_transaction
from hospitals.services.text import plain_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Access rules
# ---------------------------------------------------------------------------

def is_party(referral: Union[Referral, ReferralMirror], hospital_id: Optional[str]) -> bool:
    return bool(hospital_id) and hospital_id in (referral.from_hospital_id, referral.to_hospital_id)


def _require_party(referral, hospital_id: Optional[str]) -> None:
    if not is_party(referral, hospital_id):
        raise AccessDenied('You do not have permission to view this referral.')


def _require_receiver(referral: Referral, hospital_id: str) -> None:
    if referral.to_hospital_id != hospital_id:
        raise AccessDenied('Only the receiving hospital can respond to this referral.')


# ---------------------------------------------------------------------------
# Mirrors
# ---------------------------------------------------------------------------

def _direction_for(referral: Referral, hospital_id: str) -> str:
    if referral.to_hospital_id == hospital_id:
        return ReferralMirror.DIRECTION_INCOMING
    return ReferralMirror.DIRECTION_OUTGOING


def _mirror_fields(referral: Referral, hospital_id: str) -> dict:
    return {
        'direction': _direction_for(referral, hospital_id),
        'mirror': True,
        'from_hospital_id': referral.from_hospital_id,
        'from_hospital_name': referral.from_hospital_name,
        'to_hospital_id': referral.to_hospital_id,
        'to_hospital_name': referral.to_hospital_name,
        'required_specialist': referral.required_specialist,
        'resources_requested': referral.resources_requested,
        'status': referral.status,
        'created_at': referral.created_at,
        'updated_at': referral.updated_at,
    }


def ensure_mirror(referral: Referral, hospital_id: str) -> Tuple[ReferralMirror, bool]:
    """Materialise ``hospital_id``'s mirror if it is missing.  Never touches canonical."""
    return ReferralMirror.objects.get_or_create(
        hospital_id=hospital_id,
        referral_id=referral.referral_id,
        defaults=_mirror_fields(referral, hospital_id),
    )


def sync_mirror(referral: Referral, hospital_id: str) -> ReferralMirror:
    """Bring ``hospital_id``'s mirror in line with canonical status, creating it if needed."""
    mirror, created = ensure_mirror(referral, hospital_id)
    if not created and (mirror.status != referral.status or mirror.updated_at != referral.updated_at):
        mirror.status = referral.status
        mirror.updated_at = referral.updated_at
        mirror.save(update_fields=['status', 'updated_at'])
    return mirror


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def create_referral(acting_hospital_id: Optional[str], to_hospital_id: Optional[str], *,
                    required_specialist: Any, resources_requested: Any, user=None) -> Referral:
    if not acting_hospital_id:
        raise AccessDenied('Sender hospital could not be resolved for this session.')
    sender = Hospital.objects.filter(id=acting_hospital_id).first()
    if sender is None:
        raise AccessDenied('Sender hospital could not be resolved for this session.')
    if not to_hospital_id:
        raise ValidationError('Invalid receiver hospital ID', code='invalid_receiver')
    if acting_hospital_id == to_hospital_id:
        raise ValidationError('You cannot send a referral to your own hospital', code='self_referral')
    receiver = Hospital.objects.filter(id=to_hospital_id).first()
    if receiver is None:
        raise NotFound('Receiver hospital not found')

    requested = normalize_request(resources_requested)
    if is_empty_request(requested):
        raise ValidationError('Select at least one resource', code='empty_request')
    specialist = plain_text(required_specialist)
    if not specialist:
        raise ValidationError('Enter the required specialist doctor', code='specialist_required')

    sender_name = sender.name or sender.id
    receiver_name = receiver.name or receiver.id

    def unit() -> Referral:
        now = timezone.now()
        referral = Referral.objects.create(
            from_hospital=sender,
            from_hospital_name=sender_name,
            to_hospital=receiver,
            to_hospital_name=receiver_name,
            required_specialist=specialist,
            resources_requested=requested,
            status=Referral.STATUS_PENDING,
            created_at=now,
            updated_at=now,
        )
        ensure_mirror(referral, sender.id)
        ensure_mirror(referral, receiver.id)
        notifications.enqueue(
            receiver.id,
            referral_id=referral.referral_id,
            type=Notification.TYPE_REFERRAL_REQUEST,
            title='New Referral Request',
            message=f'Referral request from {sender_name}.',
        )
        notifications.enqueue(
            sender.id,
            referral_id=referral.referral_id,
            type=Notification.TYPE_REFERRAL_STATUS,
            title='Referral Sent',
            message=f'You sent a referral to {receiver_name}.',
            status=Referral.STATUS_PENDING,
        )
        return referral

    referral = run_transaction(unit, label='referral.create')
    logger.info('referral %s created %s -> %s', referral.referral_id, sender.id, receiver.id)
    log_action(user=user, action='referral_send', object_type='referral', object_id=referral.referral_id,
               detail={'from': sender.id, 'to': receiver.id})
    return referral


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

_STATUS_TITLES = {
    Referral.STATUS_ACCEPTED: ('Referral Accepted', 'accepted', 'referral_accept'),
    Referral.STATUS_REJECTED: ('Referral Rejected', 'rejected', 'referral_reject'),
}


def _mark_read_best_effort(hospital_id: str, referral_id: str, up_to_id: Optional[int] = None) -> int:
    try:
        with transaction.atomic():
            return notifications.mark_read(hospital_id, referral_id, up_to_id=up_to_id)
    except Exception:
        logger.warning('could not mark notifications read for %s in %s', referral_id, hospital_id, exc_info=True)
        return 0


def _transition(acting_hospital_id: Optional[str], referral_id: str, new_status: str, *, user=None):
    if not acting_hospital_id:
        raise AccessDenied('Acting hospital could not be resolved for this session.')

    def unit() -> Tuple[Referral, Optional[AllocationResult]]:
        referral = Referral.objects.select_for_update().filter(referral_id=referral_id).first()
        if referral is None:
            raise NotFound('Referral not found')
        _require_party(referral, acting_hospital_id)
        _require_receiver(referral, acting_hospital_id)
        if referral.status != Referral.STATUS_PENDING:
            raise InvalidTransition(f'Referral is already {referral.status}')

        allocation = None
        if new_status == Referral.STATUS_ACCEPTED:
            allocation = apply_allocation(referral.to_hospital_id, referral.resources_requested)

        referral.status = new_status
        referral.updated_at = timezone.now()
        referral.save(update_fields=['status', 'updated_at'])
        sync_mirror(referral, referral.from_hospital_id)
        sync_mirror(referral, referral.to_hospital_id)
        return referral, allocation

    referral, allocation = run_transaction(unit, label=f'referral.{new_status} {referral_id}')
    logger.info('referral %s %s by %s', referral_id, new_status, acting_hospital_id)

    title, verb, action = _STATUS_TITLES[new_status]
    note = notifications.enqueue(
        referral.from_hospital_id,
        referral_id=referral.referral_id,
        type=Notification.TYPE_REFERRAL_STATUS,
        title=title,
        message=f'{referral.to_hospital_name} {verb} your referral.',
        status=new_status,
    )
    _mark_read_best_effort(referral.from_hospital_id, referral.referral_id, up_to_id=note.id)
    _mark_read_best_effort(referral.to_hospital_id, referral.referral_id)

    log_action(user=user, action=action, object_type='referral', object_id=referral.referral_id,
               detail={'status': new_status})
    return referral, allocation


def accept_referral(acting_hospital_id: Optional[str], referral_id: str, *, user=None) -> Referral:
    """Accept a pending referral, allocating its resources at the receiver.

    Raises :class:`ValidationError` with the shortage list if the receiver's
    current stock cannot cover the request; nothing is written in that case.
    """
    referral, _allocation = _transition(acting_hospital_id, referral_id, Referral.STATUS_ACCEPTED, user=user)
    return referral


def reject_referral(acting_hospital_id: Optional[str], referral_id: str, *, user=None) -> Referral:
    referral, _allocation = _transition(acting_hospital_id, referral_id, Referral.STATUS_REJECTED, user=user)
    return referral


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def load_referral(acting_hospital_id: Optional[str], referral_id: str) -> ReferralMirror:
    """Return the acting hospital's mirror, rebuilding it from canonical if needed."""
    mirror = ReferralMirror.objects.filter(hospital_id=acting_hospital_id, referral_id=referral_id).first()
    if mirror is not None and mirror.status != Referral.STATUS_PENDING:
        return mirror

    referral = Referral.objects.filter(referral_id=referral_id).first()
    if referral is None:
        if mirror is not None:
            return mirror
        raise NotFound('Referral not found')
    _require_party(referral, acting_hospital_id)

    if mirror is None:
        mirror, created = ensure_mirror(referral, acting_hospital_id)
        if created:
            logger.info('materialised missing mirror %s@%s', referral_id, acting_hospital_id)
        return mirror
    if mirror.status != referral.status:
        logger.info('healing stale mirror %s@%s (%s -> %s)', referral_id, acting_hospital_id, mirror.status, referral.status)
        mirror = sync_mirror(referral, acting_hospital_id)
    return mirror


def check_status(acting_hospital_id: Optional[str], referral_id: str) -> Referral:
    """Fetch the canonical record (the sender's "check status")."""
    referral = Referral.objects.filter(referral_id=referral_id).first()
    if referral is None:
        raise NotFound('Referral not found')
    _require_party(referral, acting_hospital_id)
    sync_mirror(referral, acting_hospital_id)
    return referral


def list_referrals(hospital_id: str, *, direction: Optional[str] = None, status: Optional[str] = None):
    qs = ReferralMirror.objects.filter(hospital_id=hospital_id)
    if direction:
        qs = qs.filter(direction=direction)
    if status:
        qs = qs.filter(status=status)
    return list(qs.order_by('-created_at', '-id'))


def heal_mirrors() -> dict:
    """Materialise and re-sync the mirrors of every referral."""
    created = updated = 0
    for referral in Referral.objects.all().iterator():
        for hid in (referral.from_hospital_id, referral.to_hospital_id):
            mirror, was_created = ensure_mirror(referral, hid)
            if was_created:
                created += 1
            elif mirror.status != referral.status or mirror.updated_at != referral.updated_at:
                sync_mirror(referral, hid)
                updated += 1
    return {'created': created, 'updated': updated}


def format_referral(obj: Union[Referral, ReferralMirror]) -> dict:
    data = {
        'referralId': obj.referral_id,
        'fromHospitalId': obj.from_hospital_id,
        'fromHospitalName': obj.from_hospital_name,
        'toHospitalId': obj.to_hospital_id,
        'toHospitalName': obj.to_hospital_name,
        'requiredSpecialist': obj.required_specialist,
        'resourcesRequested': obj.resources_requested,
        'status': obj.status,
        'createdAt': obj.created_at.isoformat() if obj.created_at else None,
        'updatedAt': obj.updated_at.isoformat() if obj.updated_at else None,
    }
    if isinstance(obj, ReferralMirror):
        data['direction'] = obj.direction
        data['mirror'] = obj.mirror
    return data
