# jgpnr/background_tasks/ticket_tasks.py
"""
Background tasks for ticket maintenance.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from jgpnr.crud.crud_ticket import ticket_crud
from jgpnr.db.session import SessionLocal
from jgpnr.services.audit import record_audit
from jgpnr.utils.cache import ANALYTICS_PATTERN, TICKETS_PATTERN, cache_service
from jgpnr.utils.dates import utcnow

logger = logging.getLogger(__name__)


def expire_overdue_tickets(session_factory: Optional[Callable[[], Session]] = None) -> int:
    """
    Background task: mark ACTIVE and PENDING tickets whose valid_until has
    passed as EXPIRED. Validation expires tickets lazily as well; this sweep
    keeps listings and stats accurate for tickets nobody scans.

    Returns: Number of tickets expired
    """
    db = (session_factory or SessionLocal)()
    try:
        expired_ids = ticket_crud.expire_past_validity(db, utcnow())
        if not expired_ids:
            return 0

        logger.info(f"Expired {len(expired_ids)} overdue tickets")
        record_audit(
            db,
            action="ticket.expired",
            actor_type="system",
            entity_type="ticket",
            entity_id="batch",
            change_details={"ticket_ids": expired_ids},
        )
        cache_service.delete_pattern(TICKETS_PATTERN)
        cache_service.delete_pattern(ANALYTICS_PATTERN)
        return len(expired_ids)

    except Exception as e:
        logger.error(f"Error in expire_overdue_tickets task: {str(e)}")
        db.rollback()
        return 0

    finally:
        db.close()
