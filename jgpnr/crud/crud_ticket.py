# jgpnr/crud/crud_ticket.py
from typing import Dict, List, Optional, Set, Tuple
from datetime import datetime, timezone
from sqlalchemy.orm import Session
from sqlalchemy import and_, case, func, or_, update

from jgpnr.models.ticket import Ticket
from jgpnr.models.order import Order
from jgpnr.schemas.enums import TicketStatus


class CRUDTicket:
    """CRUD operations for Ticket model."""

    def get(self, db: Session, ticket_id: str) -> Optional[Ticket]:
        return db.query(Ticket).filter(Ticket.id == ticket_id).first()

    def get_by_code(self, db: Session, ticket_code: str) -> Optional[Ticket]:
        return (
            db.query(Ticket)
            .filter(Ticket.ticket_code == ticket_code.strip().upper())
            .first()
        )

    def existing_codes(self, db: Session, ticket_codes) -> Set[str]:
        """Return the subset of ``ticket_codes`` already taken."""
        if not ticket_codes:
            return set()
        rows = db.query(Ticket.ticket_code).filter(Ticket.ticket_code.in_(list(ticket_codes))).all()
        return {row[0] for row in rows}

    def search(
        self,
        db: Session,
        *,
        status: Optional[TicketStatus] = None,
        order_id: Optional[str] = None,
        game_session: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Ticket], int]:
        query = db.query(Ticket)

        if status:
            query = query.filter(Ticket.status == status.value)
        if order_id:
            query = query.filter(Ticket.order_id == order_id)
        if game_session:
            query = query.filter(Ticket.game_session == game_session)
        if search:
            term = f"%{search}%"
            query = query.join(Order, Order.id == Ticket.order_id).filter(
                or_(Ticket.ticket_code.ilike(term), Order.order_number.ilike(term))
            )

        total = query.count()
        tickets = (
            query.order_by(Ticket.created_at.desc()).offset(skip).limit(limit).all()
        )
        return tickets, total

    def add_bulk(self, db: Session, tickets: List[dict]) -> List[Ticket]:
        """Stage several tickets in the current transaction."""
        db_objs = [Ticket(**data) for data in tickets]
        db.add_all(db_objs)
        return db_objs

    def record_scan(self, db: Session, ticket_id: str, now: datetime) -> bool:
        """
        Consume one scan slot using an atomic conditional UPDATE.

        The row only changes while the ticket is ACTIVE and under its scan
        limit, so concurrent scans can never push scan_count past max_scans.
        Does not commit. Returns False when another scan took the last slot.
        """
        result = db.execute(
            update(Ticket)
            .where(
                and_(
                    Ticket.id == ticket_id,
                    Ticket.status == TicketStatus.ACTIVE.value,
                    Ticket.scan_count < Ticket.max_scans,
                )
            )
            .values(
                scan_count=Ticket.scan_count + 1,
                last_scan_at=now,
                first_scan_at=func.coalesce(Ticket.first_scan_at, now),
                status=case(
                    (Ticket.scan_count + 1 >= Ticket.max_scans, TicketStatus.SCANNED.value),
                    else_=Ticket.status,
                ),
                updated_at=now,
            )
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    def set_status(
        self,
        db: Session,
        ticket_id: str,
        status: TicketStatus,
        *,
        from_statuses: Optional[List[TicketStatus]] = None,
    ) -> bool:
        """Conditionally move a ticket to ``status``. Does not commit."""
        conditions = [Ticket.id == ticket_id]
        if from_statuses:
            conditions.append(Ticket.status.in_([s.value for s in from_statuses]))
        result = db.execute(
            update(Ticket)
            .where(and_(*conditions))
            .values(status=status.value, updated_at=datetime.now(timezone.utc))
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    def set_status_for_order(
        self,
        db: Session,
        order_id: str,
        status: TicketStatus,
        *,
        from_statuses: Optional[List[TicketStatus]] = None,
    ) -> int:
        conditions = [Ticket.order_id == order_id]
        if from_statuses:
            conditions.append(Ticket.status.in_([s.value for s in from_statuses]))
        result = db.execute(
            update(Ticket)
            .where(and_(*conditions))
            .values(status=status.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def expire_past_validity(self, db: Session, now: datetime) -> List[str]:
        """Mark ACTIVE/PENDING tickets past valid_until as EXPIRED and commit."""
        result = db.execute(
            update(Ticket)
            .where(
                and_(
                    Ticket.status.in_(
                        [TicketStatus.ACTIVE.value, TicketStatus.PENDING.value]
                    ),
                    Ticket.valid_until < now,
                )
            )
            .values(status=TicketStatus.EXPIRED.value, updated_at=now)
            .returning(Ticket.id)
            .execution_options(synchronize_session=False)
        )
        expired_ids = list(result.scalars().all())
        db.commit()
        return expired_ids

    def count_by_status(self, db: Session) -> Dict[str, int]:
        rows = (
            db.query(Ticket.status, func.count(Ticket.id))
            .group_by(Ticket.status)
            .all()
        )
        return {status: count for status, count in rows}

    def scan_totals(self, db: Session) -> Tuple[int, int]:
        """Return (sum of scan counts, tickets scanned at least once)."""
        total_scans, scanned = db.query(
            func.coalesce(func.sum(Ticket.scan_count), 0),
            func.coalesce(
                func.sum(case((Ticket.scan_count > 0, 1), else_=0)), 0
            ),
        ).one()
        return int(total_scans), int(scanned)


ticket_crud = CRUDTicket()
