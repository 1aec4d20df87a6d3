# jgpnr/models/order.py
from sqlalchemy import Column, String, Integer, BigInteger, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import relationship
from jgpnr.db.base_class import Base
import uuid


class Order(Base):
    __tablename__ = "orders"

    id = Column(
        String, primary_key=True, default=lambda: f"ord_{uuid.uuid4().hex[:12]}"
    )

    # Human-readable order number: ORD-YYYYMMDD-XXXXXXXX
    order_number = Column(String(32), unique=True, nullable=False, index=True)

    customer_id = Column(String, ForeignKey("customers.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False)
    # Amount in kobo
    amount = Column(BigInteger, nullable=False)

    # Status: 'PENDING', 'COMPLETED', 'CANCELLED'
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    # Payment information
    payment_reference = Column(String(255), nullable=True, index=True)
    payment_method = Column(String(30), nullable=True)
    paid_amount = Column(BigInteger, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    game_session = Column(String(100), nullable=True)
    purchase_date = Column(DateTime(timezone=True), nullable=False)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    customer = relationship("Customer", back_populates="orders")
    tickets = relationship("Ticket", back_populates="order", order_by="Ticket.created_at")

    @property
    def is_pending(self) -> bool:
        return self.status == "PENDING"

    @property
    def is_completed(self) -> bool:
        return self.status == "COMPLETED"
