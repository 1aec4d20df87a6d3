# jgpnr/services/orders/order_service.py
"""
Order lifecycle: creation with its tickets, payment confirmation,
cancellation and refunds.

Creation and confirmation run as single strict transactions. Cache
invalidation, email jobs and audit entries are post-commit effects: they
only run after the commit succeeds and a failure in one of them never
undoes the order change.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from jgpnr import crud
from jgpnr.core.exceptions import NotFoundError, PreconditionError, QRGenerationError
from jgpnr.db.session import begin_strict
from jgpnr.models.order import Order
from jgpnr.schemas.enums import OrderStatus, TicketStatus
from jgpnr.schemas.order import OrderCreate, OrderStats, PaymentConfirm
from jgpnr.services.audit import record_audit
from jgpnr.services.post_commit import PostCommitEffects
from jgpnr.services.ticket_management import codes
from jgpnr.services.ticket_management.qr_crypto import QRCipher
from jgpnr.services.ticket_management.settings_provider import TicketSettingsProvider
from jgpnr.services.ticket_management.ticket_service import TicketService
from jgpnr.utils.cache import ANALYTICS_PATTERN, ORDERS_PATTERN, TICKETS_PATTERN, CacheService, cache_service
from jgpnr.utils.dates import utcnow
from jgpnr.utils.kafka_helpers import JOB_ORDER_CONFIRMATION, JOB_PAYMENT_RECEIPT, enqueue
from jgpnr.utils.retry import retry

logger = logging.getLogger(__name__)

MAX_CODE_CANDIDATES = 5
MAX_PAGE_SIZE = 100


class OrderService:
    """Service for order creation, payment confirmation and cancellation."""

    def __init__(
        self,
        db: Session,
        settings_provider: TicketSettingsProvider,
        cipher: Optional[QRCipher] = None,
        cache: Optional[CacheService] = None,
    ):
        self.db = db
        self.settings_provider = settings_provider
        self.cache = cache or cache_service
        self.tickets = TicketService(db, cipher=cipher, cache=self.cache)

    # ---- lookups -------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        order = crud.order.get_with_tickets(self.db, order_id=order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_order_by_number(self, order_number: str) -> Order:
        order = crud.order.get_by_order_number(self.db, order_number=order_number)
        if not order:
            raise NotFoundError("Order not found")
        return order

    def list_orders(self, **filters) -> Tuple[List[Order], int]:
        filters["limit"] = min(filters.get("limit", 50), MAX_PAGE_SIZE)
        return crud.order.search(self.db, **filters)

    def get_stats(
        self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None
    ) -> OrderStats:
        def compute() -> dict:
            by_status = crud.order.count_by_status(self.db, date_from=date_from, date_to=date_to)
            revenue, tickets_sold = crud.order.completed_totals(
                self.db, date_from=date_from, date_to=date_to
            )
            return OrderStats(
                total=sum(by_status.values()),
                by_status={s.value: by_status.get(s.value, 0) for s in OrderStatus},
                total_revenue=revenue,
                tickets_sold=tickets_sold,
            ).model_dump()

        key = f"api:/orders/stats?from={date_from or ''}&to={date_to or ''}"
        return OrderStats(**self.cache.get_or_set(key, compute))

    # ---- code generation -----------------------------------------------

    def _new_order_number(self, now: datetime) -> str:
        candidate = codes.generate_order_number(now)
        for _ in range(MAX_CODE_CANDIDATES - 1):
            if not crud.order.order_number_exists(self.db, order_number=candidate):
                break
            candidate = codes.generate_order_number(now)
        # The unique constraint is the final arbiter; a clash fails the commit
        return candidate

    def _new_ticket_codes(self, now: datetime, quantity: int) -> List[str]:
        chosen: Set[str] = set()
        for _ in range(MAX_CODE_CANDIDATES):
            needed = quantity - len(chosen)
            if needed == 0:
                break
            batch = {codes.generate_ticket_code(now) for _ in range(needed)} - chosen
            chosen |= batch - crud.ticket_crud.existing_codes(self.db, batch)
        while len(chosen) < quantity:
            chosen.add(codes.generate_ticket_code(now))
        return sorted(chosen)

    # ---- creation ------------------------------------------------------

    def create_order(self, order_in: OrderCreate, *, actor_id: Optional[str] = None) -> Order:
        """
        Create a PENDING order and exactly ``quantity`` PENDING tickets.

        A collision on the order number or a ticket code rolls the whole
        attempt back and retries with fresh codes.

        Raises:
            NotFoundError: the customer does not exist
            RetryExhaustedError: every attempt collided
        """
        policy = self.settings_provider.current(self.db)

        customer = crud.customer.get(self.db, order_in.customer_id)
        if not customer:
            raise NotFoundError("Customer not found")
        customer_email, customer_name = customer.email, customer.full_name
        # End the read so the write unit can start at the strict isolation level
        self.db.rollback()

        def attempt(attempt_no: int) -> Order:
            begin_strict(self.db)
            now = utcnow()
            order = crud.order.add(
                self.db,
                obj_in={
                    "order_number": self._new_order_number(now),
                    "customer_id": order_in.customer_id,
                    "quantity": order_in.quantity,
                    "amount": order_in.amount,
                    "status": OrderStatus.PENDING.value,
                    "game_session": order_in.game_session,
                    "purchase_date": order_in.purchase_date or now,
                },
            )
            self.db.flush()

            valid_until = now + timedelta(days=policy.validity_days)
            crud.ticket_crud.add_bulk(
                self.db,
                [
                    {
                        "ticket_code": code,
                        "order_id": order.id,
                        "game_session": order_in.game_session,
                        "valid_until": valid_until,
                        "max_scans": policy.max_scan_count,
                        "scan_window": policy.scan_window_days,
                        "scan_count": 0,
                        "status": TicketStatus.PENDING.value,
                    }
                    for code in self._new_ticket_codes(now, order_in.quantity)
                ],
            )
            self.db.commit()
            return order

        order = retry(attempt, on_retry=lambda e: self.db.rollback())
        self.db.refresh(order)
        logger.info(f"Order created: {order.order_number} ({order.quantity} tickets)")

        order_id, order_number = order.id, order.order_number
        effects = PostCommitEffects()
        self._add_cache_effects(effects)
        effects.add(
            "email",
            lambda: enqueue(
                JOB_ORDER_CONFIRMATION,
                {
                    "orderId": order_id,
                    "orderNumber": order_number,
                    "customerEmail": customer_email,
                    "customerName": customer_name,
                    "quantity": order_in.quantity,
                    "amount": order_in.amount,
                },
            ),
        )
        effects.add(
            "audit",
            lambda: record_audit(
                self.db,
                action="order.created",
                actor_type="staff" if actor_id else "system",
                actor_id=actor_id,
                entity_type="order",
                entity_id=order_id,
                new_state={"status": OrderStatus.PENDING.value, "quantity": order_in.quantity},
            ),
        )
        effects.run()
        return self.get_order(order_id)

    # ---- payment -------------------------------------------------------

    def confirm_payment(
        self,
        order_id: str,
        payment: PaymentConfirm,
        *,
        actor_id: Optional[str] = None,
        actor_type: str = "staff",
    ) -> Order:
        """
        Complete a PENDING order, update customer aggregates and activate its
        tickets with freshly encrypted QR codes, all in one transaction.

        Raises:
            NotFoundError: the order does not exist
            PreconditionError: the order is already completed or cancelled
            QRGenerationError: a QR code could not be produced; nothing is saved
        """
        self.db.rollback()
        begin_strict(self.db)
        try:
            locked = crud.order.get_for_update(self.db, order_id=order_id)
            if not locked:
                raise NotFoundError("Order not found")
            if locked.status == OrderStatus.COMPLETED.value:
                raise PreconditionError("Order already completed")
            if locked.status == OrderStatus.CANCELLED.value:
                raise PreconditionError("Cannot confirm payment for a cancelled order")

            order = crud.order.get_with_tickets(self.db, order_id=order_id)
            now = utcnow()
            completed = crud.order.transition(
                self.db,
                order_id,
                from_status=OrderStatus.PENDING,
                to_status=OrderStatus.COMPLETED,
                values={
                    "payment_reference": payment.payment_reference,
                    "payment_method": payment.payment_method.value,
                    "paid_amount": payment.paid_amount,
                    "paid_at": now,
                },
            )
            if not completed:
                raise PreconditionError("Order status changed during payment confirmation")

            crud.customer.record_purchase(
                self.db, customer=order.customer, amount=order.amount, when=now
            )

            activated = 0
            for ticket in order.tickets:
                if ticket.status != TicketStatus.PENDING.value:
                    continue
                ticket.status = TicketStatus.ACTIVE.value
                self.tickets.issue_qr(ticket, order, now)
                activated += 1

            self.db.commit()
        except QRGenerationError:
            self.db.rollback()
            logger.error(f"Payment confirmation for order {order_id} rolled back: QR failure")
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(
            f"Payment confirmed for order {order.order_number}: "
            f"{activated} tickets activated (ref {payment.payment_reference})"
        )

        order_number, customer_email = order.order_number, order.customer.email
        effects = PostCommitEffects()
        self._add_cache_effects(effects)
        effects.add(
            "email",
            lambda: enqueue(
                JOB_PAYMENT_RECEIPT,
                {
                    "orderId": order_id,
                    "orderNumber": order_number,
                    "customerEmail": customer_email,
                    "paymentReference": payment.payment_reference,
                    "paidAmount": payment.paid_amount,
                },
            ),
        )
        effects.add(
            "audit",
            lambda: record_audit(
                self.db,
                action="order.completed",
                actor_type=actor_type,
                actor_id=actor_id,
                entity_type="order",
                entity_id=order_id,
                previous_state={"status": OrderStatus.PENDING.value},
                new_state={"status": OrderStatus.COMPLETED.value},
                change_details={
                    "payment_reference": payment.payment_reference,
                    "payment_method": payment.payment_method.value,
                    "paid_amount": payment.paid_amount,
                    "tickets_activated": activated,
                },
            ),
        )
        effects.run()
        return self.get_order(order_id)

    # ---- cancellation & refund -----------------------------------------

    def cancel_order(
        self, order_id: str, *, reason: Optional[str] = None, actor_id: Optional[str] = None
    ) -> Order:
        order_number = self._cancel(order_id, expected=OrderStatus.PENDING, reason=reason)
        logger.info(f"Order cancelled: {order_number}")
        self._after_cancel(order_id, "order.cancelled", OrderStatus.PENDING, reason, actor_id)
        return self.get_order(order_id)

    def refund_order(
        self, order_id: str, *, reason: Optional[str] = None, actor_id: Optional[str] = None
    ) -> Order:
        """Reverse a completed order: cancel its tickets and undo customer aggregates."""
        order_number = self._cancel(order_id, expected=OrderStatus.COMPLETED, reason=reason)
        logger.info(f"Order refunded: {order_number}")
        self._after_cancel(order_id, "order.refunded", OrderStatus.COMPLETED, reason, actor_id)
        return self.get_order(order_id)

    def _check_cancellable(self, order: Order, expected: OrderStatus) -> None:
        if expected == OrderStatus.COMPLETED:
            if order.status != OrderStatus.COMPLETED.value:
                raise PreconditionError("Only completed orders can be refunded")
            if not self.settings_provider.current(self.db).allow_refunds:
                raise PreconditionError("Refunds are disabled")
            return
        if order.status == OrderStatus.COMPLETED.value:
            raise PreconditionError("Cannot cancel completed order")
        if order.status == OrderStatus.CANCELLED.value:
            raise PreconditionError("Order is already cancelled")

    def _cancel(self, order_id: str, *, expected: OrderStatus, reason: Optional[str]) -> str:
        """
        Cancel the order and its tickets in one strict transaction. The order
        row is locked and the status change only applies while the order is
        still ``expected``, so a concurrent confirmation or refund wins cleanly.
        Returns the order number.
        """
        self.db.rollback()
        begin_strict(self.db)
        try:
            order = crud.order.get_for_update(self.db, order_id=order_id)
            if not order:
                raise NotFoundError("Order not found")
            self._check_cancellable(order, expected)
            order_number, customer_id, amount = order.order_number, order.customer_id, order.amount

            cancelled = crud.order.transition(
                self.db,
                order_id,
                from_status=expected,
                to_status=OrderStatus.CANCELLED,
                values={"cancelled_at": utcnow(), "cancel_reason": reason},
            )
            if not cancelled:
                raise PreconditionError("Order status changed during cancellation")

            if expected == OrderStatus.COMPLETED:
                customer = crud.customer.get(self.db, customer_id)
                crud.customer.reverse_purchase(self.db, customer=customer, amount=amount)
            crud.ticket_crud.set_status_for_order(self.db, order_id, TicketStatus.CANCELLED)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return order_number

    def _after_cancel(
        self,
        order_id: str,
        action: str,
        previous: OrderStatus,
        reason: Optional[str],
        actor_id: Optional[str],
    ) -> None:
        effects = PostCommitEffects()
        self._add_cache_effects(effects)
        effects.add(
            "audit",
            lambda: record_audit(
                self.db,
                action=action,
                actor_type="staff" if actor_id else "system",
                actor_id=actor_id,
                entity_type="order",
                entity_id=order_id,
                previous_state={"status": previous.value},
                new_state={"status": OrderStatus.CANCELLED.value},
                change_details={"reason": reason},
            ),
        )
        effects.run()

    def _add_cache_effects(self, effects: PostCommitEffects) -> None:
        effects.add("orders_cache", lambda: self.cache.delete_pattern(ORDERS_PATTERN))
        effects.add("analytics_cache", lambda: self.cache.delete_pattern(ANALYTICS_PATTERN))
        effects.add("tickets_cache", lambda: self.cache.delete_pattern(TICKETS_PATTERN))
