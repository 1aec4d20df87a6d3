# jgpnr/schemas/payment.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class PaymentInitialize(BaseModel):
    order_id: str
    callback_url: Optional[str] = Field(default=None, max_length=2048)


class PaymentInitializeResponse(BaseModel):
    authorization_url: str
    access_code: Optional[str] = None
    reference: str


class PaymentVerifyResponse(BaseModel):
    reference: str
    status: str
    amount: int
    order_id: Optional[str] = None
    order_status: Optional[str] = None


class AuditLogCreate(BaseModel):
    action: str
    actor_type: str
    actor_id: Optional[str] = None
    entity_type: str
    entity_id: str
    previous_state: Optional[Dict[str, Any]] = None
    new_state: Optional[Dict[str, Any]] = None
    change_details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None
