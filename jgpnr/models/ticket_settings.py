# jgpnr/models/ticket_settings.py
from sqlalchemy import Column, Integer, BigInteger, Boolean, DateTime, func
from jgpnr.db.base_class import Base

SETTINGS_ROW_ID = 1


class TicketSettings(Base):
    """Singleton row holding the venue-wide ticket policy."""
    __tablename__ = "ticket_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    max_scan_count = Column(Integer, nullable=False)
    scan_window_days = Column(Integer, nullable=False)
    validity_days = Column(Integer, nullable=False)
    base_price = Column(BigInteger, nullable=False)  # kobo
    allow_refunds = Column(Boolean, nullable=False, default=True)
    allow_transfers = Column(Boolean, nullable=False, default=False)

    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
