# jgpnr/crud/crud_order.py
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func, or_, update

from jgpnr.crud.base import CRUDBase
from jgpnr.models.customer import Customer
from jgpnr.models.order import Order
from jgpnr.schemas.order import OrderCreate
from jgpnr.schemas.enums import OrderStatus


class CRUDOrder(CRUDBase[Order, OrderCreate, OrderCreate]):
    """CRUD operations for Order model."""

    def get_with_tickets(self, db: Session, *, order_id: str) -> Optional[Order]:
        """Get an order with its tickets loaded."""
        return (
            db.query(self.model)
            .options(joinedload(self.model.tickets))
            .filter(self.model.id == order_id)
            .first()
        )

    def get_by_order_number(
        self, db: Session, *, order_number: str
    ) -> Optional[Order]:
        """Get an order by its human-readable order number."""
        return (
            db.query(self.model)
            .options(joinedload(self.model.tickets))
            .filter(self.model.order_number == order_number)
            .first()
        )

    def get_for_update(self, db: Session, *, order_id: str) -> Optional[Order]:
        """Load an order and hold its row lock until the transaction ends."""
        return (
            db.query(self.model)
            .filter(self.model.id == order_id)
            .with_for_update()
            .first()
        )

    def transition(
        self,
        db: Session,
        order_id: str,
        *,
        from_status: OrderStatus,
        to_status: OrderStatus,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Move an order from ``from_status`` to ``to_status`` in one conditional
        UPDATE. Returns False when the order was no longer in ``from_status``.
        Does not commit.
        """
        result = db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == from_status.value)
            .values(
                status=to_status.value,
                updated_at=datetime.now(timezone.utc),
                **(values or {}),
            )
            .returning(Order.id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none() is not None

    def order_number_exists(self, db: Session, *, order_number: str) -> bool:
        return (
            db.query(self.model.id)
            .filter(self.model.order_number == order_number)
            .first()
            is not None
        )

    def search(
        self,
        db: Session,
        *,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Order], int]:
        """List orders with filters and pagination."""
        query = db.query(self.model)

        if status:
            query = query.filter(self.model.status == status.value)
        if customer_id:
            query = query.filter(self.model.customer_id == customer_id)
        if search:
            term = f"%{search}%"
            query = query.join(Customer, Customer.id == self.model.customer_id).filter(
                or_(
                    self.model.order_number.ilike(term),
                    Customer.first_name.ilike(term),
                    Customer.last_name.ilike(term),
                    Customer.email.ilike(term),
                )
            )
        query = self._in_range(query, date_from, date_to)

        total = query.count()
        orders = (
            query.order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return orders, total

    def _in_range(self, query, date_from: Optional[datetime], date_to: Optional[datetime]):
        if date_from:
            query = query.filter(self.model.purchase_date >= date_from)
        if date_to:
            query = query.filter(self.model.purchase_date <= date_to)
        return query

    def count_by_status(
        self,
        db: Session,
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, int]:
        query = db.query(self.model.status, func.count(self.model.id))
        rows = self._in_range(query, date_from, date_to).group_by(self.model.status).all()
        return {status: count for status, count in rows}

    def completed_totals(
        self,
        db: Session,
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Tuple[int, int]:
        """Return (revenue, tickets sold) over completed orders."""
        query = db.query(
            func.coalesce(func.sum(self.model.amount), 0),
            func.coalesce(func.sum(self.model.quantity), 0),
        ).filter(self.model.status == OrderStatus.COMPLETED.value)
        revenue, tickets = self._in_range(query, date_from, date_to).one()
        return int(revenue), int(tickets)


order = CRUDOrder(Order)
