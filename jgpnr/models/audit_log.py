# jgpnr/models/audit_log.py
from sqlalchemy import Column, String, DateTime, JSON, func
from jgpnr.db.base_class import Base
import uuid


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(
        String, primary_key=True, default=lambda: f"aud_{uuid.uuid4().hex[:12]}"
    )

    # What happened
    action = Column(String(100), nullable=False, index=True)
    # Values: 'order.created', 'order.completed', 'order.cancelled', 'order.refunded',
    #         'ticket.scanned', 'ticket.scan_rejected', 'ticket.cancelled',
    #         'ticket.expired', 'settings.changed', 'webhook.received'

    # Who did it
    actor_type = Column(String(50), nullable=False)  # 'staff', 'system', 'webhook'
    actor_id = Column(String, nullable=True)

    # What was affected
    entity_type = Column(String(50), nullable=False)  # 'order', 'ticket', 'settings'
    entity_id = Column(String, nullable=False, index=True)

    # Change details
    previous_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    change_details = Column(JSON, nullable=True)

    request_id = Column(String(100), nullable=True)  # Correlation ID for request tracing

    # Immutable timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
