# jgpnr/crud/crud_ticket_scan.py
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from jgpnr.models.ticket_scan import TicketScan


class CRUDTicketScan:
    """
    Scan history is append-only: rows are added and read, never changed.
    """

    def add(
        self,
        db: Session,
        *,
        ticket_id: str,
        allowed: bool,
        reason: str,
        scanned_at: datetime,
        scanned_by: Optional[str] = None,
        location: Optional[str] = None,
    ) -> TicketScan:
        """Stage a scan row in the current transaction."""
        db_obj = TicketScan(
            ticket_id=ticket_id,
            allowed=allowed,
            reason=reason,
            scanned_by=scanned_by,
            location=location,
            scanned_at=scanned_at,
        )
        db.add(db_obj)
        return db_obj

    def get_by_ticket(
        self, db: Session, *, ticket_id: str, skip: int = 0, limit: int = 100
    ) -> List[TicketScan]:
        return (
            db.query(TicketScan)
            .filter(TicketScan.ticket_id == ticket_id)
            .order_by(TicketScan.scanned_at.desc(), TicketScan.id)
            .offset(skip)
            .limit(limit)
            .all()
        )


ticket_scan_crud = CRUDTicketScan()
