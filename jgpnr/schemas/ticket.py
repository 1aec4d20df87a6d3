# jgpnr/schemas/ticket.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from jgpnr.schemas.enums import TicketStatus


class Ticket(BaseModel):
    id: str
    ticket_code: str
    order_id: str
    game_session: Optional[str] = None
    valid_until: datetime
    max_scans: int
    scan_window: int
    scan_count: int
    first_scan_at: Optional[datetime] = None
    last_scan_at: Optional[datetime] = None
    status: TicketStatus
    qr_code_path: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TicketList(BaseModel):
    items: List[Ticket]
    total: int
    skip: int
    limit: int


class ValidationResult(BaseModel):
    """Outcome of checking a ticket against the scan policy."""
    valid: bool
    reason: str
    ticket: Optional[Ticket] = None
    remaining_scans: Optional[int] = None
    remaining_days: Optional[int] = None


class ScanRequest(BaseModel):
    """
    A gate scan. ``code`` is either the printed ticket code or the
    encrypted payload read from the QR image.
    """
    code: str = Field(..., min_length=1, max_length=2048)
    location: Optional[str] = Field(default=None, max_length=255)


class ValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=2048)


class TicketScan(BaseModel):
    id: str
    ticket_id: str
    scanned_by: Optional[str] = None
    location: Optional[str] = None
    allowed: bool
    reason: str
    scanned_at: datetime

    model_config = {"from_attributes": True}


class ScanResult(BaseModel):
    allowed: bool
    reason: str
    ticket: Ticket
    scan: TicketScan
    remaining_scans: Optional[int] = None
    remaining_days: Optional[int] = None


class TicketCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class TicketStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    total_scans: int
    scan_rate: float  # percent of issued tickets scanned at least once
