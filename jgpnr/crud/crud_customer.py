# jgpnr/crud/crud_customer.py
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import or_

from jgpnr.crud.base import CRUDBase
from jgpnr.models.customer import Customer
from jgpnr.schemas.customer import CustomerCreate, CustomerUpdate


class CRUDCustomer(CRUDBase[Customer, CustomerCreate, CustomerUpdate]):

    def get_by_email(self, db: Session, *, email: str) -> Optional[Customer]:
        return db.query(self.model).filter(self.model.email == email.lower()).first()

    def create(self, db: Session, *, obj_in: CustomerCreate) -> Customer:
        data = obj_in.model_dump()
        data["email"] = data["email"].lower()
        return super().create(db, obj_in=data)

    def search(
        self,
        db: Session,
        *,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[Customer], int]:
        query = db.query(self.model)
        if search:
            term = f"%{search}%"
            query = query.filter(
                or_(
                    self.model.first_name.ilike(term),
                    self.model.last_name.ilike(term),
                    self.model.email.ilike(term),
                    self.model.phone.ilike(term),
                )
            )
        total = query.count()
        items = (
            query.order_by(self.model.created_at.desc()).offset(skip).limit(limit).all()
        )
        return items, total

    def record_purchase(self, db: Session, *, customer: Customer, amount: int, when) -> None:
        """Stage the aggregate bump for a completed order."""
        customer.total_orders = (customer.total_orders or 0) + 1
        customer.total_spent = (customer.total_spent or 0) + amount
        customer.last_purchase = when
        db.add(customer)

    def reverse_purchase(self, db: Session, *, customer: Customer, amount: int) -> None:
        customer.total_orders = max((customer.total_orders or 0) - 1, 0)
        customer.total_spent = max((customer.total_spent or 0) - amount, 0)
        db.add(customer)


customer = CRUDCustomer(Customer)
