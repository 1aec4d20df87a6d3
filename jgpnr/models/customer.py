# jgpnr/models/customer.py
from sqlalchemy import Column, String, Integer, BigInteger, DateTime, func
from sqlalchemy.orm import relationship
from jgpnr.db.base_class import Base
import uuid


class Customer(Base):
    __tablename__ = "customers"

    id = Column(
        String, primary_key=True, default=lambda: f"cus_{uuid.uuid4().hex[:12]}"
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(30), nullable=True)

    # Aggregates maintained on payment confirmation (amounts in kobo)
    total_orders = Column(Integer, nullable=False, default=0)
    total_spent = Column(BigInteger, nullable=False, default=0)
    last_purchase = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    orders = relationship("Order", back_populates="customer")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
