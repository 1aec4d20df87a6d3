# jgpnr/api/v1/api.py

from fastapi import APIRouter
from jgpnr.api.v1.endpoints import (
    customers,
    orders,
    payments,
    ticket_settings,
    tickets,
)

api_router = APIRouter()

api_router.include_router(customers.router)
api_router.include_router(orders.router)
api_router.include_router(tickets.router)
api_router.include_router(ticket_settings.router)
api_router.include_router(payments.router)
