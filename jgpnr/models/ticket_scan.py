# jgpnr/models/ticket_scan.py
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import relationship
from jgpnr.db.base_class import Base
import uuid


class TicketScan(Base):
    """Append-only record of every scan attempt, allowed or not."""
    __tablename__ = "ticket_scans"

    id = Column(
        String, primary_key=True, default=lambda: f"tsc_{uuid.uuid4().hex[:12]}"
    )
    ticket_id = Column(String, ForeignKey("tickets.id"), nullable=False, index=True)

    scanned_by = Column(String, nullable=True)  # Staff user ID
    location = Column(String(255), nullable=True)  # Entry point name
    allowed = Column(Boolean, nullable=False)
    reason = Column(Text, nullable=False)

    scanned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    ticket = relationship("Ticket", back_populates="scans")
