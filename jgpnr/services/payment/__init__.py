# jgpnr/services/payment/__init__.py
from .provider_interface import PaymentGatewayInterface
from .provider_factory import get_payment_gateway

__all__ = [
    "PaymentGatewayInterface",
    "get_payment_gateway",
]
