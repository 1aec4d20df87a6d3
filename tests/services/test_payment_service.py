# tests/services/test_payment_service.py
"""
Tests for PaymentService against a mocked gateway.

Verifies:
1. initialize_payment uses the order number as the gateway reference
2. Paid, cancelled and too-small orders cannot start a checkout
3. A verified successful charge completes the order exactly once
4. Webhooks need a valid signature and are idempotent
5. Underpayments and charges for cancelled orders never complete the order
"""
import asyncio
import json

import pytest
from unittest.mock import AsyncMock, MagicMock

from jgpnr.core.exceptions import InvalidSignatureError, NotFoundError, PreconditionError
from jgpnr.models.audit_log import AuditLog
from jgpnr.schemas.enums import OrderStatus, TicketStatus
from jgpnr.services.payment.payment_service import PaymentService
from jgpnr.services.payment.provider_interface import (
    ChargeStatusEnum,
    ChargeVerification,
    InitializeChargeResult,
)

from tests.utils.customer import create_random_customer
from tests.utils.order import create_paid_order, create_random_order


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _make_gateway(**overrides):
    gateway = MagicMock()
    gateway.code = "paystack"
    gateway.initialize_charge = AsyncMock(return_value=InitializeChargeResult(
        authorization_url="https://checkout.paystack.com/abc",
        access_code="abc",
        reference="ref",
    ))
    gateway.verify_charge = AsyncMock()
    gateway.verify_webhook_signature = MagicMock(return_value=True)
    for key, value in overrides.items():
        setattr(gateway, key, value)
    return gateway


def _verification(order, **overrides):
    data = {
        "reference": order.order_number,
        "status": ChargeStatusEnum.SUCCESS,
        "amount": order.amount,
        "channel": "card",
        "metadata": {"orderId": order.id},
    }
    data.update(overrides)
    return ChargeVerification(**data)


def _webhook_body(event, order, **data_overrides):
    data = {
        "reference": order.order_number,
        "amount": order.amount,
        "channel": "bank_transfer",
        "metadata": {"orderId": order.id},
    }
    data.update(data_overrides)
    return json.dumps({"event": event, "data": data}).encode()


@pytest.fixture
def gateway():
    return _make_gateway()


@pytest.fixture
def payment_service(db, gateway, order_service):
    return PaymentService(db, gateway, order_service)


# ==================== Initialize ====================


class TestInitializePayment:

    def test_uses_order_number_as_reference(self, db, order_service, payment_service, gateway):
        customer = create_random_customer(db, email="chidi@example.com")
        order = create_random_order(order_service, db, customer=customer)

        response = run_async(payment_service.initialize_payment(order.id))

        params = gateway.initialize_charge.call_args.args[0]
        assert params.reference == order.order_number
        assert params.amount == order.amount
        assert params.email == "chidi@example.com"
        assert params.metadata["orderId"] == order.id
        assert response.authorization_url == "https://checkout.paystack.com/abc"

    def test_paid_order_rejected(self, db, order_service, payment_service):
        order = create_paid_order(order_service, db)

        with pytest.raises(PreconditionError, match="Order already paid"):
            run_async(payment_service.initialize_payment(order.id))

    def test_cancelled_order_rejected(self, db, order_service, payment_service):
        order = create_random_order(order_service, db)
        order_service.cancel_order(order.id)

        with pytest.raises(PreconditionError, match="cancelled"):
            run_async(payment_service.initialize_payment(order.id))

    def test_amount_below_minimum(self, db, order_service, payment_service):
        order = create_random_order(order_service, db, amount=500)

        with pytest.raises(PreconditionError, match="too small"):
            run_async(payment_service.initialize_payment(order.id))

    def test_unknown_order(self, db, payment_service):
        with pytest.raises(NotFoundError):
            run_async(payment_service.initialize_payment("ord_missing"))


# ==================== Verify ====================


class TestVerifyPayment:

    def test_success_completes_order(self, db, order_service, payment_service, gateway):
        order = create_random_order(order_service, db, quantity=2, amount=500000)
        gateway.verify_charge.return_value = _verification(order)

        response = run_async(payment_service.verify_payment(order.order_number))

        assert response.status == "success"
        assert response.order_id == order.id
        assert response.order_status == OrderStatus.COMPLETED.value
        completed = order_service.get_order(order.id)
        assert completed.payment_reference == order.order_number
        assert completed.payment_method == "card"
        assert all(t.status == TicketStatus.ACTIVE.value for t in completed.tickets)

    def test_repeated_verify_is_idempotent(self, db, order_service, payment_service, gateway):
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, customer=customer)
        gateway.verify_charge.return_value = _verification(order)

        run_async(payment_service.verify_payment(order.order_number))
        response = run_async(payment_service.verify_payment(order.order_number))

        assert response.order_status == OrderStatus.COMPLETED.value
        db.refresh(customer)
        assert customer.total_orders == 1

    def test_failed_charge_leaves_order_pending(self, db, order_service, payment_service, gateway):
        order = create_random_order(order_service, db)
        gateway.verify_charge.return_value = _verification(order, status=ChargeStatusEnum.FAILED)

        response = run_async(payment_service.verify_payment(order.order_number))

        assert response.status == "failed"
        assert response.order_status == OrderStatus.PENDING.value

    def test_short_reference_rejected(self, db, payment_service, gateway):
        with pytest.raises(PreconditionError):
            run_async(payment_service.verify_payment("abc"))

        gateway.verify_charge.assert_not_called()


# ==================== Webhooks ====================


class TestHandleWebhook:

    def test_missing_signature(self, db, payment_service):
        with pytest.raises(InvalidSignatureError):
            run_async(payment_service.handle_webhook(b"{}", None))

    def test_invalid_signature(self, db, order_service, rejecting_gateway):
        service = PaymentService(db, rejecting_gateway, order_service)

        with pytest.raises(InvalidSignatureError):
            run_async(service.handle_webhook(b'{"event":"charge.success"}', "bad"))

    def test_charge_success_completes_order(self, db, order_service, payment_service):
        order = create_random_order(order_service, db)

        result = run_async(payment_service.handle_webhook(
            _webhook_body("charge.success", order), "sig"
        ))

        assert result == {"message": "Webhook processed", "event": "charge.success"}
        completed = order_service.get_order(order.id)
        assert completed.status == OrderStatus.COMPLETED.value
        assert completed.payment_method == "bank_transfer"

    def test_duplicate_webhook_is_ignored(self, db, order_service, payment_service):
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, customer=customer)
        body = _webhook_body("charge.success", order)

        run_async(payment_service.handle_webhook(body, "sig"))
        run_async(payment_service.handle_webhook(body, "sig"))

        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == order.amount

    def test_underpayment_not_confirmed(self, db, order_service, payment_service):
        order = create_random_order(order_service, db, amount=250000)

        run_async(payment_service.handle_webhook(
            _webhook_body("charge.success", order, amount=100000), "sig"
        ))

        assert order_service.get_order(order.id).status == OrderStatus.PENDING.value

    def test_success_for_cancelled_order_not_confirmed(self, db, order_service, payment_service):
        order = create_random_order(order_service, db)
        order_service.cancel_order(order.id)

        run_async(payment_service.handle_webhook(_webhook_body("charge.success", order), "sig"))

        assert order_service.get_order(order.id).status == OrderStatus.CANCELLED.value

    def test_charge_failed_is_audited(self, db, order_service, payment_service):
        order = create_random_order(order_service, db)

        run_async(payment_service.handle_webhook(
            _webhook_body("charge.failed", order, gateway_response="Declined"), "sig"
        ))

        assert order_service.get_order(order.id).status == OrderStatus.PENDING.value
        entry = db.query(AuditLog).filter(AuditLog.action == "payment.failed").one()
        assert entry.entity_id == order.id
        assert entry.change_details["gateway_response"] == "Declined"

    def test_malformed_body(self, db, payment_service):
        with pytest.raises(PreconditionError):
            run_async(payment_service.handle_webhook(b"not json", "sig"))

    def test_unknown_event_acknowledged(self, db, payment_service):
        body = json.dumps({"event": "transfer.success", "data": {}}).encode()

        result = run_async(payment_service.handle_webhook(body, "sig"))

        assert result["event"] == "transfer.success"


@pytest.fixture
def rejecting_gateway():
    return _make_gateway(verify_webhook_signature=MagicMock(return_value=False))
