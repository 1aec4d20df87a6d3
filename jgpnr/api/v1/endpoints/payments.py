# jgpnr/api/v1/endpoints/payments.py
from fastapi import APIRouter, Depends, Header, Request
from typing import Optional

from jgpnr.api import deps
from jgpnr.core.limiter import limiter
from jgpnr.schemas.payment import (
    PaymentInitialize,
    PaymentInitializeResponse,
    PaymentVerifyResponse,
)
from jgpnr.schemas.token import TokenPayload
from jgpnr.services.payment.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/initialize", response_model=PaymentInitializeResponse)
async def initialize_payment(
    body: PaymentInitialize,
    service: PaymentService = Depends(deps.get_payment_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return await service.initialize_payment(
        body.order_id, callback_url=body.callback_url, actor_id=current_user.sub
    )


@router.get("/verify/{reference}", response_model=PaymentVerifyResponse)
async def verify_payment(
    reference: str,
    service: PaymentService = Depends(deps.get_payment_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return await service.verify_payment(reference)


@router.post("/webhook")
@limiter.exempt
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(default=None),
    service: PaymentService = Depends(deps.get_payment_service),
):
    """
    Gateway webhook. Authenticated by HMAC-SHA512 over the raw body, not by
    bearer token.
    """
    raw_body = await request.body()
    return await service.handle_webhook(raw_body, x_paystack_signature)
