"""
Notification side-channel: a per-hospital, append-only inbox.

Every write publishes a ``notifications.changed`` event to the hospital's
channel group after commit; subscribers respond by re-sending the full
ordered inbox (see :mod:`hospitals.realtime.consumers`).
"""
from __future__ import annotations

import logging
from typing import Optional

from hospitals.models import Notification
from hospitals.services.broadcast import notifications_group, publish_on_commit

logger = logging.getLogger(__name__)


def _changed(hospital_id: str) -> None:
    publish_on_commit(notifications_group(hospital_id), {'type': 'notifications.changed', 'hospitalId': hospital_id})


def enqueue(hospital_id: str, *, type: str, title: str, message: str = '',
            referral_id: Optional[str] = None, status: Optional[str] = None, read: bool = False) -> Notification:
    n = Notification.objects.create(
        hospital_id=hospital_id,
        referral_id=referral_id,
        type=type,
        title=title,
        message=message,
        status=status,
        read=read,
    )
    _changed(hospital_id)
    return n


def mark_read(hospital_id: str, referral_id: str, up_to_id: Optional[int] = None) -> int:
    """Mark every inbox entry referencing ``referral_id`` as read.

    With ``up_to_id`` only entries older than that notification are marked.
    """
    qs = Notification.objects.filter(hospital_id=hospital_id, referral_id=referral_id, read=False)
    if up_to_id is not None:
        qs = qs.filter(id__lt=up_to_id)
    updated = qs.update(read=True)
    if updated:
        _changed(hospital_id)
    return updated


def mark_read_one(hospital_id: str, notification_id: int) -> int:
    """Mark a single entry read; entries of other hospitals are never touched."""
    updated = Notification.objects.filter(hospital_id=hospital_id, id=notification_id, read=False).update(read=True)
    if updated:
        _changed(hospital_id)
    return updated


def list_for(hospital_id: str, *, unread_only: bool = False, limit: Optional[int] = None):
    qs = Notification.objects.filter(hospital_id=hospital_id)
    if unread_only:
        qs = qs.filter(read=False)
    qs = qs.order_by('-timestamp', '-id')
    if limit:
        qs = qs[:limit]
    return list(qs)


def unread_count(hospital_id: str) -> int:
    return Notification.objects.filter(hospital_id=hospital_id, read=False).count()


def format_notification(n: Notification) -> dict:
    return {
        'id': n.id,
        'referralId': n.referral_id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'status': n.status,
        'read': n.read,
        'timestamp': n.timestamp.isoformat() if n.timestamp else None,
    }


def inbox_snapshot(hospital_id: str, limit: int = 200) -> dict:
    """The payload pushed to live subscribers: the whole current inbox, newest first."""
    items = list_for(hospital_id, limit=limit)
    return {
        'type': 'notifications',
        'hospitalId': hospital_id,
        'unread': unread_count(hospital_id),
        'items': [format_notification(n) for n in items],
    }
