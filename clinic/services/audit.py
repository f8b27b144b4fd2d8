import logging
from typing import Optional, Any, Dict

from django.contrib.auth import get_user_model
from django.db import transaction

from clinic.models import AuditEvent

User = get_user_model()
logger = logging.getLogger(__name__)


def log_action(*, user: Optional[User], action: str, object_type: Optional[str] = None,
               object_id: Optional[Any] = None, detail: Optional[Dict[str, Any]] = None) -> Optional[AuditEvent]:
    """Write an audit row; failures are logged and never reach the caller."""
    try:
        with transaction.atomic():
            return AuditEvent.objects.create(
                user=user if isinstance(user, User) and user.pk else None,
                action=action,
                object_type=object_type,
                object_id=str(object_id) if object_id is not None else None,
                detail=detail or {},
            )
    except Exception:
        logger.warning('audit write failed for action=%s', action, exc_info=True)
        return None
