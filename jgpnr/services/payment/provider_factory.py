# jgpnr/services/payment/provider_factory.py
from typing import Optional

from jgpnr.core.config import settings
from jgpnr.services.payment.provider_interface import PaymentGatewayInterface
from jgpnr.services.payment.providers.paystack_provider import PaystackProvider

_gateway: Optional[PaymentGatewayInterface] = None


def get_payment_gateway() -> PaymentGatewayInterface:
    """Return the configured gateway, built once per process."""
    global _gateway
    if _gateway is None:
        _gateway = PaystackProvider(secret_key=settings.PAYSTACK_SECRET_KEY)
    return _gateway
