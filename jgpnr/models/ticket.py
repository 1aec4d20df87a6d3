# jgpnr/models/ticket.py
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, CheckConstraint, func
from sqlalchemy.orm import relationship
from jgpnr.db.base_class import Base
import uuid


class Ticket(Base):
    """A single entry pass issued as part of an order."""
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint("scan_count >= 0 AND scan_count <= max_scans", name="ck_tickets_scan_count"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"tkt_{uuid.uuid4().hex[:12]}"
    )

    # Format: JGPNR-YYYY-XXXXXXXX
    ticket_code = Column(String(32), unique=True, nullable=False, index=True)

    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)

    game_session = Column(String(100), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=False)

    # Scan policy copied from the settings in force when the ticket was issued
    max_scans = Column(Integer, nullable=False)
    scan_window = Column(Integer, nullable=False)  # days

    scan_count = Column(Integer, nullable=False, default=0)
    first_scan_at = Column(DateTime(timezone=True), nullable=True)
    last_scan_at = Column(DateTime(timezone=True), nullable=True)

    # Status: 'PENDING', 'ACTIVE', 'SCANNED', 'EXPIRED', 'CANCELLED'
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    qr_code_path = Column(String(512), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    order = relationship("Order", back_populates="tickets")
    scans = relationship(
        "TicketScan", back_populates="ticket", order_by="TicketScan.scanned_at.desc()"
    )
