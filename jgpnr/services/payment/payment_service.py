# jgpnr/services/payment/payment_service.py
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from jgpnr import crud
from jgpnr.core.config import settings
from jgpnr.core.exceptions import InvalidSignatureError, NotFoundError, PreconditionError
from jgpnr.models.order import Order
from jgpnr.schemas.enums import OrderStatus, PaymentMethod
from jgpnr.schemas.order import PaymentConfirm
from jgpnr.schemas.payment import PaymentInitializeResponse, PaymentVerifyResponse
from jgpnr.services.audit import record_audit
from jgpnr.services.orders.order_service import OrderService
from .provider_interface import (
    ChargeStatusEnum,
    ChargeVerification,
    InitializeChargeParams,
    PaymentGatewayInterface,
    WebhookEventType,
)

logger = logging.getLogger(__name__)

# Gateways reject charges below this amount (kobo)
MIN_CHARGE_AMOUNT = 1000
MIN_REFERENCE_LENGTH = 5

CHANNEL_TO_METHOD = {
    "card": PaymentMethod.CARD,
    "bank": PaymentMethod.BANK_TRANSFER,
    "bank_transfer": PaymentMethod.BANK_TRANSFER,
    "dedicated_nuban": PaymentMethod.BANK_TRANSFER,
    "ussd": PaymentMethod.USSD,
}


class PaymentService:
    """
    Orchestrates hosted checkout with the payment gateway.

    The gateway reference is always the order number, so verify calls and
    webhooks can find the order without extra bookkeeping. Confirmation goes
    through OrderService.confirm_payment and is idempotent: a repeated
    success for an already completed order is logged and ignored.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayInterface,
        order_service: OrderService,
    ):
        self.db = db
        self.gateway = gateway
        self.orders = order_service

    async def initialize_payment(
        self,
        order_id: str,
        *,
        callback_url: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> PaymentInitializeResponse:
        order = crud.order.get(self.db, order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.status == OrderStatus.COMPLETED.value:
            raise PreconditionError("Order already paid")
        if order.status == OrderStatus.CANCELLED.value:
            raise PreconditionError("Cannot pay for cancelled order")
        if order.amount < MIN_CHARGE_AMOUNT:
            raise PreconditionError("Payment amount too small (minimum ₦10)")

        customer = order.customer
        result = await self.gateway.initialize_charge(
            InitializeChargeParams(
                email=customer.email,
                amount=order.amount,
                reference=order.order_number,
                callback_url=callback_url or f"{settings.FRONTEND_URL}/payment/callback",
                metadata={
                    "orderId": order.id,
                    "customerId": customer.id,
                    "customerName": customer.full_name,
                    "initiatedBy": actor_id,
                },
            )
        )
        logger.info(f"Payment initialized for order {order.order_number}")
        return PaymentInitializeResponse(
            authorization_url=result.authorization_url,
            access_code=result.access_code,
            reference=result.reference,
        )

    async def verify_payment(self, reference: str) -> PaymentVerifyResponse:
        if not reference or len(reference) < MIN_REFERENCE_LENGTH:
            raise PreconditionError("Invalid payment reference")

        verification = await self.gateway.verify_charge(reference)
        order = None
        if verification.succeeded:
            order = self._complete_from_gateway(verification, actor_type="system")
        else:
            order = crud.order.get_by_order_number(self.db, order_number=reference)

        return PaymentVerifyResponse(
            reference=verification.reference,
            status=verification.status.value,
            amount=verification.amount,
            order_id=order.id if order else None,
            order_status=order.status if order else None,
        )

    async def handle_webhook(self, raw_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if not signature:
            logger.warning("Webhook received without signature")
            raise InvalidSignatureError("Missing webhook signature")
        if not self.gateway.verify_webhook_signature(raw_body, signature):
            logger.warning("Invalid webhook signature received")
            raise InvalidSignatureError("Invalid webhook signature")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            raise PreconditionError("Malformed webhook payload")

        event = payload.get("event", WebhookEventType.UNKNOWN.value)
        data = payload.get("data") or {}
        reference = data.get("reference")
        logger.info(f"Webhook received: {event} (reference {reference})")

        if event == WebhookEventType.CHARGE_SUCCESS.value:
            self._complete_from_gateway(
                ChargeVerification(
                    reference=reference or "",
                    status=ChargeStatusEnum.SUCCESS,
                    amount=int(data.get("amount") or 0),
                    channel=data.get("channel"),
                    paid_at=data.get("paid_at"),
                    metadata=data.get("metadata") or {},
                ),
                actor_type="webhook",
            )
        elif event == WebhookEventType.CHARGE_FAILED.value:
            self._record_failure(reference, data)
        else:
            logger.info(f"Unhandled webhook event: {event}")

        return {"message": "Webhook processed", "event": event}

    def _find_order(self, verification: ChargeVerification) -> Optional[Order]:
        order_id = (verification.metadata or {}).get("orderId")
        if order_id:
            order = crud.order.get(self.db, order_id)
            if order:
                return order
        if verification.reference:
            return crud.order.get_by_order_number(
                self.db, order_number=verification.reference
            )
        return None

    def _complete_from_gateway(
        self, verification: ChargeVerification, *, actor_type: str
    ) -> Optional[Order]:
        order = self._find_order(verification)
        if not order:
            logger.error(f"No order for successful charge {verification.reference}")
            return None
        if order.status == OrderStatus.COMPLETED.value:
            logger.info(f"Order already completed: {order.order_number}")
            return order
        if order.status == OrderStatus.CANCELLED.value:
            logger.warning(
                f"Successful charge {verification.reference} for cancelled order "
                f"{order.order_number}; manual refund required"
            )
            return order
        if verification.amount < order.amount:
            logger.error(
                f"Underpayment for order {order.order_number}: "
                f"paid {verification.amount}, expected {order.amount}"
            )
            return order

        method = CHANNEL_TO_METHOD.get(verification.channel or "", PaymentMethod.CARD)
        order_id, order_number = order.id, order.order_number
        # End the read so confirmation starts its own strict transaction
        self.db.rollback()
        try:
            return self.orders.confirm_payment(
                order_id,
                PaymentConfirm(
                    payment_reference=verification.reference,
                    paid_amount=verification.amount,
                    payment_method=method,
                ),
                actor_type=actor_type,
            )
        except PreconditionError as e:
            # A concurrent verify or webhook completed the order first
            logger.info(f"Skipping confirmation for {order_number}: {e.detail}")
            return crud.order.get(self.db, order_id)

    def _record_failure(self, reference: Optional[str], data: Dict[str, Any]) -> None:
        order = (
            crud.order.get_by_order_number(self.db, order_number=reference)
            if reference
            else None
        )
        logger.warning(f"Payment failed for reference {reference}: {data.get('gateway_response')}")
        if order:
            record_audit(
                self.db,
                action="payment.failed",
                actor_type="webhook",
                entity_type="order",
                entity_id=order.id,
                change_details={
                    "reference": reference,
                    "gateway_response": data.get("gateway_response"),
                },
            )
