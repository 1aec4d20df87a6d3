# jgpnr/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from jgpnr.core.config import settings
from jgpnr.db.session import get_db
from jgpnr.schemas.token import TokenPayload
from jgpnr.services.orders.order_service import OrderService
from jgpnr.services.payment.payment_service import PaymentService
from jgpnr.services.payment.provider_factory import get_payment_gateway
from jgpnr.services.payment.provider_interface import PaymentGatewayInterface
from jgpnr.services.ticket_management.qr_crypto import QRCipher
from jgpnr.services.ticket_management.settings_provider import TicketSettingsProvider
from jgpnr.services.ticket_management.ticket_service import TicketService

# The tokenUrl is only used for the OpenAPI docs; tokens are issued elsewhere.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError):
        raise credentials_exception

    return token_data


def get_settings_provider(request: Request) -> TicketSettingsProvider:
    """The provider is created in the app lifespan and lives on app.state."""
    return request.app.state.settings_provider


def get_qr_cipher(request: Request) -> Optional[QRCipher]:
    return getattr(request.app.state, "qr_cipher", None)


def get_ticket_service(
    db: Session = Depends(get_db),
    cipher: Optional[QRCipher] = Depends(get_qr_cipher),
) -> TicketService:
    return TicketService(db, cipher=cipher)


def get_order_service(
    db: Session = Depends(get_db),
    settings_provider: TicketSettingsProvider = Depends(get_settings_provider),
    cipher: Optional[QRCipher] = Depends(get_qr_cipher),
) -> OrderService:
    return OrderService(db, settings_provider, cipher=cipher)


def get_gateway() -> PaymentGatewayInterface:
    try:
        return get_payment_gateway()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway is not configured",
        )


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaymentGatewayInterface = Depends(get_gateway),
    order_service: OrderService = Depends(get_order_service),
) -> PaymentService:
    return PaymentService(db, gateway, order_service)
