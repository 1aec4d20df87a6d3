# jgpnr/services/audit.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from jgpnr.crud.crud_audit_log import audit_log_crud
from jgpnr.schemas.payment import AuditLogCreate

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    *,
    action: str,
    actor_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: Optional[str] = None,
    previous_state: Optional[Dict[str, Any]] = None,
    new_state: Optional[Dict[str, Any]] = None,
    change_details: Optional[Dict[str, Any]] = None,
) -> None:
    """Write an audit entry. Failures are logged and never propagate."""
    try:
        entry = AuditLogCreate(
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_state=previous_state,
            new_state=new_state,
            change_details=change_details,
        )
        audit_log_crud.create(db, obj_in=entry)
    except Exception as e:
        logger.error(f"Failed to write audit log {action} for {entity_type} {entity_id}: {e}")
        db.rollback()
