# jgpnr/services/payment/providers/paystack_provider.py
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from jgpnr.core.config import settings
from jgpnr.core.exceptions import PaymentGatewayError
from jgpnr.services.payment.provider_interface import (
    ChargeStatusEnum,
    ChargeVerification,
    InitializeChargeParams,
    InitializeChargeResult,
    PaymentGatewayInterface,
)

logger = logging.getLogger(__name__)

PAYSTACK_STATUS_MAP = {
    "success": ChargeStatusEnum.SUCCESS,
    "failed": ChargeStatusEnum.FAILED,
    "abandoned": ChargeStatusEnum.ABANDONED,
    "reversed": ChargeStatusEnum.REVERSED,
    "ongoing": ChargeStatusEnum.PENDING,
    "pending": ChargeStatusEnum.PENDING,
    "processing": ChargeStatusEnum.PENDING,
    "queued": ChargeStatusEnum.PENDING,
}


class PaystackProvider(PaymentGatewayInterface):
    def __init__(
        self,
        secret_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise ValueError("PAYSTACK_SECRET_KEY not configured")
        if not secret_key.startswith("sk_"):
            logger.warning("Paystack secret key format may be incorrect")
        self._secret_key = secret_key
        self._base_url = (base_url or settings.PAYSTACK_BASE_URL).rstrip("/")
        self._timeout = timeout or settings.PAYSTACK_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def code(self) -> str:
        return "paystack"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {self._secret_key}"},
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"Paystack request timed out: {method} {path}")
            raise PaymentGatewayError(
                code="TIMEOUT",
                message="Payment request timed out",
                retryable=True,
            )
        except httpx.HTTPError as e:
            logger.error(f"Paystack transport error: {e}")
            raise PaymentGatewayError(
                code="PROVIDER_ERROR",
                message="Payment service temporarily unavailable",
                retryable=True,
            )

        if response.status_code >= 400:
            logger.error(
                f"Paystack API error {response.status_code} on {path}: {response.text[:500]}"
            )
            raise PaymentGatewayError(
                code="RATE_LIMIT" if response.status_code == 429 else "PROVIDER_ERROR",
                message=f"Paystack API returned {response.status_code}",
                retryable=response.status_code == 429 or response.status_code >= 500,
            )

        body = response.json()
        if not body.get("status"):
            raise PaymentGatewayError(
                code="INVALID_REQUEST",
                message=body.get("message") or "Paystack rejected the request",
                retryable=False,
            )
        return body.get("data") or {}

    async def initialize_charge(self, params: InitializeChargeParams) -> InitializeChargeResult:
        data = await self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": params.email,
                "amount": params.amount,
                "reference": params.reference,
                "callback_url": params.callback_url,
                "metadata": params.metadata,
            },
        )
        logger.info(f"Paystack charge initialized: {params.reference}")
        return InitializeChargeResult(
            authorization_url=data["authorization_url"],
            access_code=data.get("access_code"),
            reference=data.get("reference", params.reference),
        )

    async def verify_charge(self, reference: str) -> ChargeVerification:
        data = await self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        status = PAYSTACK_STATUS_MAP.get(data.get("status"), ChargeStatusEnum.FAILED)
        logger.info(f"Paystack charge verified: {reference} status={status.value}")
        return ChargeVerification(
            reference=data.get("reference", reference),
            status=status,
            amount=int(data.get("amount") or 0),
            channel=data.get("channel"),
            paid_at=data.get("paid_at"),
            gateway_response=data.get("gateway_response"),
            metadata=data.get("metadata") or {},
        )

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        expected = hmac.new(
            self._secret_key.encode("utf-8"), payload, hashlib.sha512
        ).hexdigest()
        return hmac.compare_digest(expected, signature)
