import logging
from typing import Optional, Any, Dict

from django.contrib.auth import get_user_model
from django.db import transaction

from hospitals.models import AuditEvent

User = get_user_model()
logger = logging.getLogger(__name__)


def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[str]=None, detail: Optional[Dict[str, Any]]=None) -> Optional[AuditEvent]:
    """Record an audit event; failures are logged and swallowed."""
    try:
        with transaction.atomic():
            return AuditEvent.objects.create(
                user=user if getattr(user, 'pk', None) else None,
                action=action,
                object_type=object_type,
                object_id=str(object_id) if object_id is not None else None,
                detail=detail or {},
            )
    except Exception:
        logger.warning('audit log failed for %s %s', action, object_id, exc_info=True)
        return None
