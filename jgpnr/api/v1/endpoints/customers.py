# jgpnr/api/v1/endpoints/customers.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from jgpnr import crud
from jgpnr.api import deps
from jgpnr.db.session import get_db
from jgpnr.schemas.customer import Customer, CustomerCreate, CustomerList, CustomerUpdate
from jgpnr.schemas.token import TokenPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_in: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    if crud.customer.get_by_email(db, email=customer_in.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A customer with this email already exists",
        )
    customer = crud.customer.create(db, obj_in=customer_in)
    logger.info(f"Customer created: {customer.id}")
    return customer


@router.get("", response_model=CustomerList)
def list_customers(
    search: Optional[str] = Query(default=None, max_length=100),
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    customers, total = crud.customer.search(db, search=search, skip=skip, limit=limit)
    return CustomerList(items=customers, total=total, skip=skip, limit=limit)


@router.get("/{customer_id}", response_model=Customer)
def get_customer(
    customer_id: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    customer = crud.customer.get(db, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


@router.patch("/{customer_id}", response_model=Customer)
def update_customer(
    customer_id: str,
    customer_in: CustomerUpdate,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    customer = crud.customer.get(db, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return crud.customer.update(db, db_obj=customer, obj_in=customer_in)
