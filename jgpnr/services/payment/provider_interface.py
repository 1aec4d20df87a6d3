# jgpnr/services/payment/provider_interface.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ChargeStatusEnum(str, Enum):
    """Standardized charge status."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABANDONED = "abandoned"
    REVERSED = "reversed"


class WebhookEventType(str, Enum):
    CHARGE_SUCCESS = "charge.success"
    CHARGE_FAILED = "charge.failed"
    UNKNOWN = "unknown"


@dataclass
class InitializeChargeParams:
    email: str
    amount: int  # kobo
    reference: str
    callback_url: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InitializeChargeResult:
    authorization_url: str
    access_code: Optional[str]
    reference: str


@dataclass
class ChargeVerification:
    reference: str
    status: ChargeStatusEnum
    amount: int  # kobo
    channel: Optional[str] = None
    paid_at: Optional[str] = None
    gateway_response: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == ChargeStatusEnum.SUCCESS


class PaymentGatewayInterface(ABC):
    """Contract every payment gateway integration implements."""

    @property
    @abstractmethod
    def code(self) -> str:
        """Gateway identifier, e.g. 'paystack'."""

    @abstractmethod
    async def initialize_charge(self, params: InitializeChargeParams) -> InitializeChargeResult:
        """Start a hosted checkout and return the URL the customer is sent to."""

    @abstractmethod
    async def verify_charge(self, reference: str) -> ChargeVerification:
        """Look up the final state of a charge by its reference."""

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Check a webhook body against its signature header."""
