# jgpnr/schemas/order.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from jgpnr.schemas.enums import OrderStatus, PaymentMethod
from jgpnr.schemas.ticket import Ticket

MAX_TICKETS_PER_ORDER = 100


class OrderCreate(BaseModel):
    customer_id: str
    quantity: int = Field(..., ge=1, le=MAX_TICKETS_PER_ORDER)
    amount: int = Field(..., gt=0, description="Amount in kobo")
    game_session: Optional[str] = Field(default=None, max_length=100)
    purchase_date: Optional[datetime] = None


class PaymentConfirm(BaseModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)
    paid_amount: int = Field(..., gt=0, description="Amount in kobo")
    payment_method: PaymentMethod


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class Order(BaseModel):
    id: str
    order_number: str
    customer_id: str
    quantity: int
    amount: int
    status: OrderStatus
    payment_reference: Optional[str] = None
    payment_method: Optional[str] = None
    paid_amount: Optional[int] = None
    paid_at: Optional[datetime] = None
    game_session: Optional[str] = None
    purchase_date: datetime
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderWithTickets(Order):
    tickets: List[Ticket] = []


class OrderList(BaseModel):
    items: List[Order]
    total: int
    skip: int
    limit: int


class OrderStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    total_revenue: int  # kobo, completed orders only
    tickets_sold: int
