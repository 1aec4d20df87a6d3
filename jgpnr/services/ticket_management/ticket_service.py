# jgpnr/services/ticket_management/ticket_service.py
"""
Ticket lifecycle: validation against the scan policy, gate scans, QR
issuance and cancellation.

Validation checks run in a fixed order and the first failing check decides
the outcome:

    not found -> cancelled -> expired -> past valid_until -> not yet paid
    -> scan limit reached -> scan window elapsed -> valid

Reaching valid_until flips the ticket to EXPIRED the first time it is
checked; that is the only write validation performs.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from jgpnr.core.exceptions import (
    InvalidQRCodeError,
    NotFoundError,
    PreconditionError,
    QRGenerationError,
)
from jgpnr.crud.crud_ticket import ticket_crud
from jgpnr.crud.crud_ticket_scan import ticket_scan_crud
from jgpnr.models.order import Order
from jgpnr.models.ticket import Ticket
from jgpnr.models.ticket_scan import TicketScan
from jgpnr.schemas.enums import TicketStatus
from jgpnr.schemas.ticket import ScanResult, TicketStats, ValidationResult
from jgpnr.schemas.ticket import Ticket as TicketSchema
from jgpnr.schemas.ticket import TicketScan as TicketScanSchema
from jgpnr.services.audit import record_audit
from jgpnr.services.post_commit import PostCommitEffects
from jgpnr.services.ticket_management.qr_crypto import QRCipher
from jgpnr.services.ticket_management.qr_image import save_qr_png
from jgpnr.utils.cache import TICKETS_PATTERN, ANALYTICS_PATTERN, CacheService, cache_service
from jgpnr.utils.dates import as_utc, days_between, utcnow

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
STATS_CACHE_KEY = "api:/tickets/stats"


@dataclass
class Decision:
    valid: bool
    reason: str
    remaining_scans: Optional[int] = None
    remaining_days: Optional[int] = None
    expire: bool = False


def evaluate_ticket(ticket: Ticket, now: datetime) -> Decision:
    """Apply the scan policy to a loaded ticket. Pure; never writes."""
    if ticket.status == TicketStatus.CANCELLED.value:
        return Decision(False, "Ticket has been cancelled")

    if ticket.status == TicketStatus.EXPIRED.value:
        return Decision(False, "Ticket has expired")

    if now > as_utc(ticket.valid_until):
        return Decision(False, "Ticket validity period has expired", expire=True)

    if ticket.status == TicketStatus.PENDING.value:
        return Decision(False, "Ticket is not active (payment pending)")

    if ticket.scan_count >= ticket.max_scans:
        return Decision(False, f"Maximum scan limit ({ticket.max_scans}) reached")

    remaining_scans = ticket.max_scans - ticket.scan_count

    if ticket.first_scan_at is not None:
        elapsed = days_between(ticket.first_scan_at, now)
        if elapsed > ticket.scan_window:
            return Decision(False, f"Scan window of {ticket.scan_window} days has expired")
        remaining_days = ticket.scan_window - elapsed
        return Decision(
            True,
            f"Valid ({remaining_days} days remaining in scan window)",
            remaining_scans=remaining_scans,
            remaining_days=remaining_days,
        )

    return Decision(
        True,
        "Valid (first scan)",
        remaining_scans=remaining_scans,
        remaining_days=ticket.scan_window,
    )


class TicketService:
    """Service for ticket validation, scanning and lifecycle operations."""

    def __init__(
        self,
        db: Session,
        cipher: Optional[QRCipher] = None,
        cache: Optional[CacheService] = None,
    ):
        self.db = db
        self.cipher = cipher
        self.cache = cache or cache_service

    # ---- lookups -------------------------------------------------------

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = ticket_crud.get(self.db, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    def get_ticket_by_code(self, ticket_code: str) -> Ticket:
        ticket = ticket_crud.get_by_code(self.db, ticket_code)
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    def list_tickets(
        self,
        *,
        status: Optional[TicketStatus] = None,
        order_id: Optional[str] = None,
        game_session: Optional[str] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Ticket], int]:
        return ticket_crud.search(
            self.db,
            status=status,
            order_id=order_id,
            game_session=game_session,
            search=search,
            skip=skip,
            limit=min(limit, MAX_PAGE_SIZE),
        )

    def get_scan_history(self, ticket_id: str, skip: int = 0, limit: int = 100) -> List[TicketScan]:
        self.get_ticket(ticket_id)
        return ticket_scan_crud.get_by_ticket(
            self.db, ticket_id=ticket_id, skip=skip, limit=min(limit, MAX_PAGE_SIZE)
        )

    def get_stats(self) -> TicketStats:
        def compute() -> dict:
            by_status = ticket_crud.count_by_status(self.db)
            total = sum(by_status.values())
            total_scans, scanned = ticket_crud.scan_totals(self.db)
            return TicketStats(
                total=total,
                by_status={s.value: by_status.get(s.value, 0) for s in TicketStatus},
                total_scans=total_scans,
                scan_rate=round(scanned / total * 100, 2) if total else 0.0,
            ).model_dump()

        return TicketStats(**self.cache.get_or_set(STATS_CACHE_KEY, compute))

    # ---- QR ------------------------------------------------------------

    def _require_cipher(self) -> QRCipher:
        if self.cipher is None:
            raise PreconditionError("QR encryption is not configured")
        return self.cipher

    def resolve_ticket(self, code: str) -> Optional[Ticket]:
        """
        Find the ticket for a printed code or an encrypted QR payload.
        Returns None when no ticket matches.
        """
        code = code.strip()
        if not QRCipher.looks_encrypted(code):
            return ticket_crud.get_by_code(self.db, code)

        payload = self._require_cipher().decrypt(code)
        ticket_code = payload.get("code")
        if not isinstance(ticket_code, str):
            raise InvalidQRCodeError()
        ticket = ticket_crud.get_by_code(self.db, ticket_code)
        if ticket is not None and payload.get("orderId") != ticket.order_id:
            logger.warning(f"QR payload order mismatch for ticket {ticket.ticket_code}")
            raise InvalidQRCodeError()
        return ticket

    def issue_qr(self, ticket: Ticket, order: Order, now: Optional[datetime] = None) -> str:
        """
        Encrypt the ticket's QR payload, write the PNG and stage the path on
        the ticket. Does not commit.

        Raises:
            QRGenerationError: encryption or image rendering failed
        """
        if self.cipher is None:
            raise QRGenerationError("QR encryption is not configured")
        payload = {
            "code": ticket.ticket_code,
            "orderId": order.id,
            "customerId": order.customer_id,
            "gameSession": ticket.game_session,
            "validUntil": as_utc(ticket.valid_until).isoformat(),
            "maxScans": ticket.max_scans,
            "issuedAt": (now or utcnow()).isoformat(),
        }
        try:
            envelope = self.cipher.encrypt(payload)
            path = save_qr_png(ticket.ticket_code, envelope)
        except Exception as e:
            logger.error(f"QR generation failed for ticket {ticket.ticket_code}: {e}")
            raise QRGenerationError(f"Failed to generate QR code for ticket {ticket.ticket_code}")
        ticket.qr_code_path = path
        self.db.add(ticket)
        return path

    # ---- validation & scanning ----------------------------------------

    def _expire(self, ticket: Ticket) -> None:
        ticket_crud.set_status(
            self.db,
            ticket.id,
            TicketStatus.EXPIRED,
            from_statuses=[TicketStatus.PENDING, TicketStatus.ACTIVE, TicketStatus.SCANNED],
        )
        logger.info(f"Ticket {ticket.ticket_code} expired on validation")

    def validate_ticket(self, code: str) -> ValidationResult:
        """Check a ticket without consuming a scan."""
        ticket = self.resolve_ticket(code)
        if ticket is None:
            return ValidationResult(valid=False, reason="Ticket not found")

        decision = evaluate_ticket(ticket, utcnow())
        if decision.expire:
            self._expire(ticket)
            self.db.commit()
            self.db.refresh(ticket)
            self.cache.delete_pattern(TICKETS_PATTERN)

        return ValidationResult(
            valid=decision.valid,
            reason=decision.reason,
            ticket=TicketSchema.model_validate(ticket),
            remaining_scans=decision.remaining_scans,
            remaining_days=decision.remaining_days,
        )

    def scan_ticket(
        self,
        code: str,
        *,
        scanned_by: Optional[str] = None,
        location: Optional[str] = None,
    ) -> ScanResult:
        """
        Validate and, when allowed, consume one scan. Every attempt leaves a
        TicketScan row; the row and the counter change commit together.

        Raises:
            NotFoundError: no ticket matches the code
            InvalidQRCodeError: the QR payload failed authentication
        """
        ticket = self.resolve_ticket(code)
        if ticket is None:
            raise NotFoundError("Ticket not found")

        now = utcnow()
        decision = evaluate_ticket(ticket, now)
        allowed, reason = decision.valid, decision.reason

        try:
            if decision.expire:
                self._expire(ticket)

            if allowed and not ticket_crud.record_scan(self.db, ticket.id, now):
                # Lost a race with a concurrent scan or status change
                self.db.refresh(ticket)
                retry_decision = evaluate_ticket(ticket, now)
                allowed = False
                reason = (
                    retry_decision.reason
                    if not retry_decision.valid
                    else f"Maximum scan limit ({ticket.max_scans}) reached"
                )

            scan = ticket_scan_crud.add(
                self.db,
                ticket_id=ticket.id,
                allowed=allowed,
                reason=reason,
                scanned_at=now,
                scanned_by=scanned_by,
                location=location,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(ticket)
        self.db.refresh(scan)

        log = logger.info if allowed else logger.warning
        log(f"Scan {'allowed' if allowed else 'denied'} for {ticket.ticket_code}: {reason}")

        ticket_id, ticket_code, scan_count = ticket.id, ticket.ticket_code, ticket.scan_count
        effects = PostCommitEffects()
        effects.add(
            "audit",
            lambda: record_audit(
                self.db,
                action="ticket.scanned" if allowed else "ticket.scan_rejected",
                actor_type="staff" if scanned_by else "system",
                actor_id=scanned_by,
                entity_type="ticket",
                entity_id=ticket_id,
                new_state={"scan_count": scan_count},
                change_details={"ticket_code": ticket_code, "reason": reason, "location": location},
            ),
        )
        effects.add("cache", lambda: self.cache.delete_pattern(TICKETS_PATTERN))

        result = ScanResult(
            allowed=allowed,
            reason=reason,
            ticket=TicketSchema.model_validate(ticket),
            scan=TicketScanSchema.model_validate(scan),
            remaining_scans=ticket.max_scans - ticket.scan_count,
            remaining_days=decision.remaining_days if allowed else None,
        )
        effects.run()
        return result

    # ---- cancellation --------------------------------------------------

    def cancel_ticket(
        self, ticket_id: str, *, reason: Optional[str] = None, actor_id: Optional[str] = None
    ) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        if ticket.status == TicketStatus.CANCELLED.value:
            raise PreconditionError("Ticket is already cancelled")

        previous_status = ticket.status
        ticket.status = TicketStatus.CANCELLED.value
        if reason:
            ticket.notes = f"{ticket.notes}\n{reason}" if ticket.notes else reason
        self.db.add(ticket)
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"Ticket cancelled: {ticket.ticket_code}")

        effects = PostCommitEffects()
        effects.add(
            "audit",
            lambda: record_audit(
                self.db,
                action="ticket.cancelled",
                actor_type="staff" if actor_id else "system",
                actor_id=actor_id,
                entity_type="ticket",
                entity_id=ticket.id,
                previous_state={"status": previous_status},
                new_state={"status": TicketStatus.CANCELLED.value},
                change_details={"reason": reason},
            ),
        )
        effects.add("cache", lambda: self.cache.delete_pattern(TICKETS_PATTERN))
        effects.add("analytics_cache", lambda: self.cache.delete_pattern(ANALYTICS_PATTERN))
        effects.run()
        return ticket
