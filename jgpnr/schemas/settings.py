# jgpnr/schemas/settings.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class TicketSettings(BaseModel):
    max_scan_count: int
    scan_window_days: int
    validity_days: int
    base_price: int
    allow_refunds: bool
    allow_transfers: bool
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TicketSettingsUpdate(BaseModel):
    max_scan_count: Optional[int] = Field(default=None, ge=1, le=10)
    scan_window_days: Optional[int] = Field(default=None, ge=1, le=365)
    validity_days: Optional[int] = Field(default=None, ge=1, le=365)
    base_price: Optional[int] = Field(default=None, gt=0)
    allow_refunds: Optional[bool] = None
    allow_transfers: Optional[bool] = None
