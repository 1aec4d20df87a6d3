# jgpnr/api/v1/endpoints/tickets.py
"""
Gate scanning and ticket management endpoints.

Scan and validate accept either the printed ticket code or the encrypted
payload read from the QR image.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from jgpnr.api import deps
from jgpnr.core.limiter import limiter, SCAN_RATE_LIMIT, VALIDATE_RATE_LIMIT
from jgpnr.schemas.enums import TicketStatus
from jgpnr.schemas.ticket import (
    ScanRequest,
    ScanResult,
    Ticket,
    TicketCancel,
    TicketList,
    TicketScan,
    TicketStats,
    ValidateRequest,
    ValidationResult,
)
from jgpnr.schemas.token import TokenPayload
from jgpnr.services.ticket_management.ticket_service import TicketService

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("/validate", response_model=ValidationResult)
@limiter.limit(VALIDATE_RATE_LIMIT)
def validate_ticket(
    request: Request,
    body: ValidateRequest,
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Check a ticket without consuming a scan."""
    return service.validate_ticket(body.code)


@router.post("/scan", response_model=ScanResult)
@limiter.limit(SCAN_RATE_LIMIT)
def scan_ticket(
    request: Request,
    body: ScanRequest,
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Scan a ticket at the gate. Denied scans return 200 with ``allowed: false``;
    the attempt is still recorded in the ticket's scan history.
    """
    return service.scan_ticket(
        body.code, scanned_by=current_user.sub, location=body.location
    )


@router.get("", response_model=TicketList)
def list_tickets(
    status_filter: Optional[TicketStatus] = Query(default=None, alias="status"),
    order_id: Optional[str] = None,
    game_session: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    tickets, total = service.list_tickets(
        status=status_filter,
        order_id=order_id,
        game_session=game_session,
        search=search,
        skip=skip,
        limit=limit,
    )
    return TicketList(items=tickets, total=total, skip=skip, limit=limit)


@router.get("/stats", response_model=TicketStats)
def get_ticket_stats(
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_stats()


@router.get("/code/{ticket_code}", response_model=Ticket)
def get_ticket_by_code(
    ticket_code: str,
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_ticket_by_code(ticket_code)


@router.get("/{ticket_id}", response_model=Ticket)
def get_ticket(
    ticket_id: str,
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_ticket(ticket_id)


@router.get("/{ticket_id}/scans", response_model=List[TicketScan])
def get_scan_history(
    ticket_id: str,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=100),
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_scan_history(ticket_id, skip=skip, limit=limit)


@router.post("/{ticket_id}/cancel", response_model=Ticket)
def cancel_ticket(
    ticket_id: str,
    body: Optional[TicketCancel] = None,
    service: TicketService = Depends(deps.get_ticket_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    reason = body.reason if body else None
    return service.cancel_ticket(ticket_id, reason=reason, actor_id=current_user.sub)
