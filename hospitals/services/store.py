"""
Transactional primitive shared by every write to resource snapshots and
referrals.

``run_transaction`` runs a unit of work inside ``transaction.atomic`` and
re-runs it when the database reports a lock or serialisation conflict.
Units must take their row locks with ``select_for_update`` and read the
state they act on inside the unit, so a retry always starts from a fresh
read.
"""
from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from django.conf import settings
from django.db import DatabaseError, OperationalError, transaction

from hospitals.exceptions import ConcurrencyConflict, ReferralError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Fragments of backend error messages that signal a retryable write conflict
# (SQLite busy / shared-cache table lock, MySQL deadlock / lock wait,
# PostgreSQL serialisation).
_CONFLICT_MARKERS = (
    'database is locked',
    'database table is locked',
    'deadlock',
    'lock wait timeout',
    'could not serialize',
    'could not obtain lock',
)


def is_conflict(exc: BaseException) -> bool:
    if not isinstance(exc, OperationalError):
        return False
    text = str(exc).lower()
    return any(marker in text for marker in _CONFLICT_MARKERS)


def run_transaction(unit: Callable[[], T], *, label: str = 'tx', max_attempts: int | None = None) -> T:
    """Run ``unit`` atomically, retrying on write conflicts.

    Domain errors raised by the unit roll it back and propagate unchanged.
    A conflict that persists past ``max_attempts`` becomes
    :class:`ConcurrencyConflict`; any other database failure becomes
    :class:`TransportError`.  Nested calls join the outer transaction and
    do not retry on their own.
    """
    attempts = max_attempts or getattr(settings, 'REFERRAL_TX_MAX_ATTEMPTS', 5)
    backoff_ms = getattr(settings, 'REFERRAL_TX_BACKOFF_MS', 25)
    nested = transaction.get_connection().in_atomic_block

    attempt = 0
    while True:
        attempt += 1
        try:
            with transaction.atomic():
                return unit()
        except ReferralError:
            raise
        except DatabaseError as exc:
            if nested:
                raise
            if is_conflict(exc) and attempt < attempts:
                delay = backoff_ms * attempt + random.randint(0, backoff_ms)
                logger.warning('%s: write conflict on attempt %d/%d, retrying in %dms', label, attempt, attempts, delay)
                time.sleep(delay / 1000.0)
                continue
            if is_conflict(exc):
                logger.warning('%s: giving up after %d conflicting attempts', label, attempt)
                raise ConcurrencyConflict(f'{label}: concurrent update, please retry') from exc
            logger.exception('%s: database failure', label)
            raise TransportError(f'{label}: {exc}') from exc
