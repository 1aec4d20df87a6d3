# jgpnr/api/v1/endpoints/orders.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from jgpnr.api import deps
from jgpnr.schemas.enums import OrderStatus
from jgpnr.schemas.order import (
    OrderCancel,
    OrderCreate,
    OrderList,
    OrderStats,
    OrderWithTickets,
    PaymentConfirm,
)
from jgpnr.schemas.token import TokenPayload
from jgpnr.services.orders.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderWithTickets, status_code=status.HTTP_201_CREATED)
def create_order(
    order_in: OrderCreate,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """Create a PENDING order together with its tickets."""
    return service.create_order(order_in, actor_id=current_user.sub)


@router.get("", response_model=OrderList)
def list_orders(
    status_filter: Optional[OrderStatus] = Query(default=None, alias="status"),
    customer_id: Optional[str] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    orders, total = service.list_orders(
        status=status_filter,
        customer_id=customer_id,
        search=search,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
    )
    return OrderList(items=orders, total=total, skip=skip, limit=limit)


@router.get("/stats", response_model=OrderStats)
def get_order_stats(
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_stats(date_from=date_from, date_to=date_to)


@router.get("/number/{order_number}", response_model=OrderWithTickets)
def get_order_by_number(
    order_number: str,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_order_by_number(order_number)


@router.get("/{order_id}", response_model=OrderWithTickets)
def get_order(
    order_id: str,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    return service.get_order(order_id)


@router.post("/{order_id}/confirm-payment", response_model=OrderWithTickets)
def confirm_payment(
    order_id: str,
    payment: PaymentConfirm,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    """
    Record a payment taken outside the gateway (cash, manual transfer) and
    activate the order's tickets.
    """
    return service.confirm_payment(order_id, payment, actor_id=current_user.sub)


@router.post("/{order_id}/cancel", response_model=OrderWithTickets)
def cancel_order(
    order_id: str,
    body: Optional[OrderCancel] = None,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    reason = body.reason if body else None
    return service.cancel_order(order_id, reason=reason, actor_id=current_user.sub)


@router.post("/{order_id}/refund", response_model=OrderWithTickets)
def refund_order(
    order_id: str,
    body: Optional[OrderCancel] = None,
    service: OrderService = Depends(deps.get_order_service),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    reason = body.reason if body else None
    return service.refund_order(order_id, reason=reason, actor_id=current_user.sub)
