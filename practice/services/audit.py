from typing import Any, Dict, Optional

from practice.models import AuditLog, Practitioner


def log_action(*, practitioner: Optional[Practitioner], action: str, object_type: Optional[str] = None,
               object_id: Optional[Any] = None, detail: Optional[Dict[str, Any]] = None) -> AuditLog:
    return AuditLog.objects.create(
        practitioner=practitioner if isinstance(practitioner, Practitioner) else None,
        action=action,
        object_type=object_type or '',
        object_id=str(object_id) if object_id is not None else '',
        detail=detail or {},
    )
