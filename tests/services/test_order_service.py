# tests/services/test_order_service.py
"""
Tests for OrderService.

Verifies:
1. create_order inserts a PENDING order with exactly `quantity` PENDING tickets
2. New tickets take their scan policy from the current settings
3. Order number collisions are retried with fresh numbers
4. Persistent collisions raise RetryExhaustedError and leave nothing behind
5. confirm_payment completes the order, activates tickets and updates the customer
6. A second confirmation is rejected without touching customer aggregates
7. A QR failure rolls the whole confirmation back
8. Cancel and refund follow the order state machine
9. Post-commit failures never undo the committed change
10. Cancel, refund and confirmation never overwrite a concurrent status change
"""
import json
import re
from types import SimpleNamespace

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from jgpnr import crud
from jgpnr.core.exceptions import (
    NotFoundError,
    PreconditionError,
    QRGenerationError,
    RetryExhaustedError,
)
from jgpnr.models.order import Order
from jgpnr.models.ticket import Ticket
from jgpnr.schemas.enums import OrderStatus, PaymentMethod, TicketStatus
from jgpnr.schemas.order import OrderCreate, PaymentConfirm
from jgpnr.schemas.settings import TicketSettingsUpdate
from jgpnr.services.ticket_management import codes
from jgpnr.services.ticket_management import ticket_service as ticket_service_module

from tests.utils.customer import create_random_customer
from tests.utils.order import create_random_order


def _snapshot(order, status):
    """A stale read of ``order`` as it looked before another writer committed."""
    return SimpleNamespace(
        id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        amount=order.amount,
        status=status.value,
    )


class _SerializationFailure(Exception):
    pgcode = "40001"


def _payment(**overrides):
    data = {
        "payment_reference": "PSK-REF-0001",
        "paid_amount": 750000,
        "payment_method": PaymentMethod.CARD,
    }
    data.update(overrides)
    return PaymentConfirm(**data)


# ==================== Creation ====================


class TestCreateOrder:

    def test_creates_pending_order_with_tickets(self, db, order_service):
        customer = create_random_customer(db)

        order = order_service.create_order(
            OrderCreate(customer_id=customer.id, quantity=3, amount=750000)
        )

        assert order.status == OrderStatus.PENDING.value
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-Z]{8}", order.order_number)
        assert len(order.tickets) == 3
        assert len({t.ticket_code for t in order.tickets}) == 3
        for ticket in order.tickets:
            assert ticket.status == TicketStatus.PENDING.value
            assert ticket.scan_count == 0
            assert ticket.qr_code_path is None
            assert re.fullmatch(r"JGPNR-\d{4}-[2-9A-HJKMNP-Z]{8}", ticket.ticket_code)

    def test_tickets_follow_current_settings(self, db, order_service, settings_provider):
        settings_provider.update(db, TicketSettingsUpdate(max_scan_count=5, scan_window_days=7))

        order = create_random_order(order_service, db, quantity=2)

        assert all(t.max_scans == 5 for t in order.tickets)
        assert all(t.scan_window == 7 for t in order.tickets)

    def test_unknown_customer(self, db, order_service):
        with pytest.raises(NotFoundError):
            order_service.create_order(
                OrderCreate(customer_id="cus_missing", quantity=1, amount=250000)
            )

    def test_enqueues_confirmation_email(self, db, order_service, mock_kafka):
        create_random_order(order_service, db)

        mock_kafka.send.assert_called_once()
        job = mock_kafka.send.call_args.kwargs["value"]
        assert job["type"] == "order-confirmation"

    def test_retries_after_order_number_collision(self, db, order_service, monkeypatch):
        taken = create_random_order(order_service, db).order_number
        real_generate = codes.generate_order_number
        calls = {"n": 0}

        def colliding(now):
            calls["n"] += 1
            # The whole first attempt only ever sees the taken number
            if calls["n"] <= 5:
                return taken
            return real_generate(now)

        monkeypatch.setattr(codes, "generate_order_number", colliding)

        order = create_random_order(order_service, db)

        assert order.order_number != taken
        assert db.query(Order).count() == 2

    def test_persistent_collision_exhausts_retries(self, db, order_service, monkeypatch):
        taken = create_random_order(order_service, db, quantity=2).order_number
        monkeypatch.setattr(codes, "generate_order_number", lambda now: taken)

        with pytest.raises(RetryExhaustedError) as exc_info:
            create_random_order(order_service, db, quantity=4)

        assert exc_info.value.attempts == 3
        assert exc_info.value.retryable is True
        db.expire_all()
        assert db.query(Order).count() == 1
        assert db.query(Ticket).count() == 2

    def test_retries_serialization_failure(self, db, order_service, monkeypatch):
        real_add = crud.order.add
        calls = {"n": 0}

        def conflicting(db_session, *, obj_in):
            calls["n"] += 1
            if calls["n"] == 1:
                raise OperationalError(
                    "INSERT INTO orders", {}, _SerializationFailure("could not serialize access")
                )
            return real_add(db_session, obj_in=obj_in)

        monkeypatch.setattr(crud.order, "add", conflicting)

        order = create_random_order(order_service, db, quantity=2)

        assert calls["n"] == 2
        assert order.status == OrderStatus.PENDING.value
        assert db.query(Ticket).count() == 2

    def test_thousand_orders_get_distinct_numbers(self, db, order_service):
        customer = create_random_customer(db)

        for _ in range(1000):
            order_service.create_order(
                OrderCreate(customer_id=customer.id, quantity=1, amount=250000)
            )

        numbers = [n for (n,) in db.query(Order.order_number).all()]
        assert len(numbers) == 1000
        assert len(set(numbers)) == 1000


# ==================== Payment confirmation ====================


class TestConfirmPayment:

    def test_completes_order_and_activates_tickets(self, db, order_service, cipher, monkeypatch):
        envelopes = {}

        def capture(ticket_code, data):
            envelopes[ticket_code] = data
            return f"/uploads/qrcodes/{ticket_code}.png"

        monkeypatch.setattr(ticket_service_module, "save_qr_png", capture)
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, quantity=3, amount=750000, customer=customer)

        confirmed = order_service.confirm_payment(order.id, _payment())

        assert confirmed.status == OrderStatus.COMPLETED.value
        assert confirmed.payment_reference == "PSK-REF-0001"
        assert confirmed.payment_method == "card"
        assert confirmed.paid_amount == 750000
        assert confirmed.paid_at is not None
        assert len(confirmed.tickets) == 3
        for ticket in confirmed.tickets:
            assert ticket.status == TicketStatus.ACTIVE.value
            assert ticket.qr_code_path == f"/uploads/qrcodes/{ticket.ticket_code}.png"
            payload = cipher.decrypt(envelopes[ticket.ticket_code])
            assert payload["code"] == ticket.ticket_code
            assert payload["orderId"] == order.id

        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == 750000
        assert customer.last_purchase is not None

    def test_writes_qr_images(self, db, order_service):
        from jgpnr.core.config import settings
        import os

        order = create_random_order(order_service, db)
        confirmed = order_service.confirm_payment(order.id, _payment(paid_amount=250000))

        ticket_code = confirmed.tickets[0].ticket_code
        assert os.path.exists(os.path.join(settings.QR_CODE_DIR, f"{ticket_code}.png"))

    def test_double_confirmation_rejected(self, db, order_service):
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, quantity=2, amount=500000, customer=customer)
        order_service.confirm_payment(order.id, _payment(paid_amount=500000))

        with pytest.raises(PreconditionError, match="Order already completed"):
            order_service.confirm_payment(order.id, _payment(paid_amount=500000))

        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == 500000

    def test_cancelled_order_cannot_be_confirmed(self, db, order_service):
        order = create_random_order(order_service, db)
        order_service.cancel_order(order.id)

        with pytest.raises(PreconditionError, match="cancelled order"):
            order_service.confirm_payment(order.id, _payment())

    def test_qr_failure_rolls_back_everything(self, db, order_service, monkeypatch):
        def broken(ticket_code, data):
            raise OSError("disk full")

        monkeypatch.setattr(ticket_service_module, "save_qr_png", broken)
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, quantity=2, customer=customer)

        with pytest.raises(QRGenerationError):
            order_service.confirm_payment(order.id, _payment())

        db.expire_all()
        reloaded = crud.order.get_with_tickets(db, order_id=order.id)
        assert reloaded.status == OrderStatus.PENDING.value
        assert reloaded.payment_reference is None
        assert all(t.status == TicketStatus.PENDING.value for t in reloaded.tickets)
        assert reloaded.customer.total_orders == 0
        assert reloaded.customer.total_spent == 0

    def test_missing_cipher_fails_confirmation(self, db, settings_provider, cache):
        from jgpnr.services.orders.order_service import OrderService

        service = OrderService(db, settings_provider, cipher=None, cache=cache)
        order = create_random_order(service, db)

        with pytest.raises(QRGenerationError):
            service.confirm_payment(order.id, _payment())

    def test_post_commit_failures_do_not_undo_payment(self, db, settings_provider, cipher):
        from jgpnr.services.orders.order_service import OrderService
        from jgpnr.utils.cache import CacheService

        client = MagicMock()
        client.scan_iter.side_effect = RuntimeError("redis exploded")
        service = OrderService(db, settings_provider, cipher=cipher, cache=CacheService(client))
        order = create_random_order(service, db)

        confirmed = service.confirm_payment(order.id, _payment())

        assert confirmed.status == OrderStatus.COMPLETED.value

    def test_unknown_order(self, db, order_service):
        with pytest.raises(NotFoundError):
            order_service.confirm_payment("ord_missing", _payment())


# ==================== Cancellation & refund ====================


class TestCancelAndRefund:

    def test_cancel_pending_order_cancels_tickets(self, db, order_service):
        order = create_random_order(order_service, db, quantity=2)

        cancelled = order_service.cancel_order(order.id, reason="Customer changed plans")

        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancel_reason == "Customer changed plans"
        assert cancelled.cancelled_at is not None
        assert all(t.status == TicketStatus.CANCELLED.value for t in cancelled.tickets)

    def test_cannot_cancel_completed_order(self, db, order_service):
        order = create_random_order(order_service, db)
        order_service.confirm_payment(order.id, _payment())

        with pytest.raises(PreconditionError, match="Cannot cancel completed order"):
            order_service.cancel_order(order.id)

    def test_cannot_cancel_twice(self, db, order_service):
        order = create_random_order(order_service, db)
        order_service.cancel_order(order.id)

        with pytest.raises(PreconditionError, match="already cancelled"):
            order_service.cancel_order(order.id)

    def test_refund_reverses_customer_totals(self, db, order_service):
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, amount=250000, customer=customer)
        order_service.confirm_payment(order.id, _payment(paid_amount=250000))

        refunded = order_service.refund_order(order.id, reason="Rained out")

        assert refunded.status == OrderStatus.CANCELLED.value
        assert all(t.status == TicketStatus.CANCELLED.value for t in refunded.tickets)
        db.refresh(customer)
        assert customer.total_orders == 0
        assert customer.total_spent == 0

    def test_refund_requires_completed_order(self, db, order_service):
        order = create_random_order(order_service, db)

        with pytest.raises(PreconditionError, match="Only completed orders"):
            order_service.refund_order(order.id)

    def test_refund_disabled_by_settings(self, db, order_service, settings_provider):
        settings_provider.update(db, TicketSettingsUpdate(allow_refunds=False))
        order = create_random_order(order_service, db)
        order_service.confirm_payment(order.id, _payment())

        with pytest.raises(PreconditionError, match="Refunds are disabled"):
            order_service.refund_order(order.id)

    def test_cancel_does_not_overwrite_a_confirmed_order(self, db, order_service, monkeypatch):
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, amount=250000, customer=customer)
        order_id = order.id
        # Cancel reads the order as PENDING, then a confirmation commits first
        snapshot = _snapshot(order, OrderStatus.PENDING)
        order_service.confirm_payment(order_id, _payment(paid_amount=250000))
        monkeypatch.setattr(crud.order, "get_for_update", lambda db_session, *, order_id: snapshot)

        with pytest.raises(PreconditionError, match="changed during cancellation"):
            order_service.cancel_order(order_id)

        current = order_service.get_order(order_id)
        assert current.status == OrderStatus.COMPLETED.value
        assert current.cancelled_at is None
        assert all(t.status == TicketStatus.ACTIVE.value for t in current.tickets)
        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == 250000

    def test_refund_reverses_totals_only_once(self, db, order_service, monkeypatch):
        customer = create_random_customer(db)
        first = create_random_order(order_service, db, amount=250000, customer=customer)
        second = create_random_order(order_service, db, amount=500000, customer=customer)
        order_service.confirm_payment(first.id, _payment(paid_amount=250000))
        order_service.confirm_payment(second.id, _payment(paid_amount=500000))
        first_id = first.id
        snapshot = _snapshot(first, OrderStatus.COMPLETED)
        order_service.refund_order(first_id)
        monkeypatch.setattr(crud.order, "get_for_update", lambda db_session, *, order_id: snapshot)

        with pytest.raises(PreconditionError, match="changed during cancellation"):
            order_service.refund_order(first_id)

        db.refresh(customer)
        assert customer.total_orders == 1
        assert customer.total_spent == 500000

    def test_confirmation_does_not_revive_a_cancelled_order(self, db, order_service, monkeypatch):
        customer = create_random_customer(db)
        order = create_random_order(order_service, db, amount=250000, customer=customer)
        order_id = order.id
        snapshot = _snapshot(order, OrderStatus.PENDING)
        order_service.cancel_order(order_id)
        monkeypatch.setattr(crud.order, "get_for_update", lambda db_session, *, order_id: snapshot)

        with pytest.raises(PreconditionError, match="changed during payment confirmation"):
            order_service.confirm_payment(order_id, _payment(paid_amount=250000))

        current = order_service.get_order(order_id)
        assert current.status == OrderStatus.CANCELLED.value
        assert current.paid_at is None
        assert all(t.status == TicketStatus.CANCELLED.value for t in current.tickets)
        db.refresh(customer)
        assert customer.total_orders == 0


# ==================== Listing & stats ====================


class TestOrderQueries:

    def test_stats_count_only_completed_revenue(self, db, order_service):
        paid = create_random_order(order_service, db, quantity=2, amount=500000)
        create_random_order(order_service, db, quantity=1, amount=250000)
        order_service.confirm_payment(paid.id, _payment(paid_amount=500000))

        stats = order_service.get_stats()

        assert stats.total == 2
        assert stats.by_status[OrderStatus.COMPLETED.value] == 1
        assert stats.by_status[OrderStatus.PENDING.value] == 1
        assert stats.by_status[OrderStatus.CANCELLED.value] == 0
        assert stats.total_revenue == 500000
        assert stats.tickets_sold == 2

    def test_list_filters_by_status(self, db, order_service):
        paid = create_random_order(order_service, db)
        create_random_order(order_service, db)
        order_service.confirm_payment(paid.id, _payment())

        orders, total = order_service.list_orders(status=OrderStatus.COMPLETED)

        assert total == 1
        assert orders[0].id == paid.id

    def test_get_by_number(self, db, order_service):
        order = create_random_order(order_service, db)

        assert order_service.get_order_by_number(order.order_number).id == order.id
        with pytest.raises(NotFoundError):
            order_service.get_order_by_number("ORD-00000000-XXXXXXXX")

    def test_stats_served_from_cache(self, db, settings_provider):
        from jgpnr.services.orders.order_service import OrderService
        from jgpnr.utils.cache import CacheService

        cached = {
            "total": 7,
            "by_status": {"PENDING": 2, "COMPLETED": 5, "CANCELLED": 0},
            "total_revenue": 1250000,
            "tickets_sold": 5,
        }
        client = MagicMock()
        client.get.return_value = json.dumps(cached)
        service = OrderService(db, settings_provider, cache=CacheService(client))

        stats = service.get_stats()

        assert stats.total == 7
        assert stats.total_revenue == 1250000
        client.get.assert_called_once_with("api:/orders/stats?from=&to=")
