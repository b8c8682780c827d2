"""
Channel-layer fan-out for live feeds.

Events go to per-hospital ``notifications.<id>`` and ``resources.<id>``
groups only after the surrounding transaction commits, so subscribers never
see rolled-back state.  Delivery is best effort: a layer failure is logged
and never fails the write.
"""
import logging
import re

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

logger = logging.getLogger(__name__)

# channel layer group names: ASCII alphanumerics, hyphen, underscore, period; < 100 chars
_GROUP_UNSAFE = re.compile(r'[^0-9A-Za-z._-]')


def _group(prefix: str, hospital_id: str) -> str:
    return f"{prefix}.{_GROUP_UNSAFE.sub('_', str(hospital_id))}"[:90]


def notifications_group(hospital_id: str) -> str:
    return _group("notifications", hospital_id)


def resources_group(hospital_id: str) -> str:
    return _group("resources", hospital_id)


def _send(group: str, event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    try:
        async_to_sync(channel_layer.group_send)(group, event)
    except Exception:
        logger.warning('group_send to %s failed', group, exc_info=True)


def publish_on_commit(group: str, event: dict) -> None:
    """Send ``event`` to ``group`` once the current transaction commits."""
    transaction.on_commit(lambda: _send(group, event))
