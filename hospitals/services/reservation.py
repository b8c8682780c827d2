"""
Reservation Transaction.

``apply_allocation`` debits a referral's requested resources from the
receiving hospital's snapshot as one locked read-modify-write.  The
sufficiency check is repeated on the locked read, so a request that was
fine when the sender composed it but no longer fits is refused without
writing anything.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List

from django.conf import settings

from hospitals.exceptions import AllocationError, ValidationError
from hospitals.models import Notification
from hospitals.services import notifications
from hospitals.services.availability import check_sufficiency, normalize_request
from hospitals.services.resources import BLOOD_GROUPS, ResourceView, lock_snapshot, save_view
from hospitals.services.store import run_transaction

logger = logging.getLogger(__name__)


@dataclass
class AllocationResult:
    hospital_id: str
    before: ResourceView
    after: ResourceView
    low_blood_groups: List[str] = field(default_factory=list)


def debit(view: ResourceView, requested: Any) -> ResourceView:
    """Return a copy of ``view`` with ``requested`` allocated.

    Occupancy counters grow, consumables shrink (floored at zero) and
    ambulances move from idle to ``active``.
    """
    req = normalize_request(requested)
    after = ResourceView.from_document(view.hospital_id, view.as_document())
    after.beds['occupied'] += req['bed']
    after.icu_beds['occupied'] += req['icuBeds']
    after.ventilators['occupied'] += req['ventilator']
    after.oxygen_available = max(0, after.oxygen_available - req['oxygenCylinders'])
    after.ambulances['active'] += req['ambulances']
    for group, amount in req['bloodBank'].items():
        if amount:
            after.blood_bank[group] = max(0, after.blood_bank.get(group, 0) - amount)
    return after


def _newly_low(before: ResourceView, after: ResourceView, requested: dict) -> List[str]:
    threshold = getattr(settings, 'LOW_BLOOD_THRESHOLD', 20)
    return [
        g for g in BLOOD_GROUPS
        if requested['bloodBank'].get(g) and before.blood_available(g) >= threshold > after.blood_available(g)
    ]


def apply_allocation(hospital_id: str, requested: Any) -> AllocationResult:
    """Allocate ``requested`` at ``hospital_id`` atomically.

    Raises :class:`AllocationError` (``missing-resource-doc``) when the
    hospital has no snapshot and :class:`ValidationError` with the shortage
    list when the locked read shows insufficient stock.  Called inside an
    outer transaction it joins it, so the caller's later writes commit or
    roll back together with the allocation.
    """
    req = normalize_request(requested)

    def unit() -> AllocationResult:
        snapshot = lock_snapshot(hospital_id)
        if snapshot is None:
            raise AllocationError('Receiving hospital has no resources setup.', code='missing-resource-doc')
        before = ResourceView.from_document(hospital_id, snapshot.data)
        result = check_sufficiency(before, req)
        if not result.ok:
            logger.info('allocation at %s refused: %s', hospital_id, result.summary().replace('\n', '; '))
            raise ValidationError('Insufficient resources', shortages=result.shortages, code='insufficient_resources')
        after = debit(before, req)
        save_view(snapshot, after)
        low = _newly_low(before, after, req)
        for group in low:
            notifications.enqueue(
                hospital_id,
                type=Notification.TYPE_WARNING,
                title='Low Blood Stock',
                message=f'{group} blood is down to {after.blood_available(group)} units.',
            )
        return AllocationResult(hospital_id=hospital_id, before=before, after=after, low_blood_groups=low)

    return run_transaction(unit, label=f'allocation {hospital_id}')
