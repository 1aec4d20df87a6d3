# jgpnr/schemas/customer.py
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime


class CustomerCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)


class CustomerUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)


class Customer(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    total_orders: int
    total_spent: int
    last_purchase: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerList(BaseModel):
    items: List[Customer]
    total: int
    skip: int
    limit: int
