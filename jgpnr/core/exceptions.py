# jgpnr/core/exceptions.py
"""
Domain exceptions raised by the ticketing services.

Each exception carries the HTTP status the API layer renders it with, so
services stay free of FastAPI imports and endpoints do not need to
translate errors one by one.
"""
from typing import Optional


class TicketingError(Exception):
    """Base class for all ticketing domain errors."""

    status_code = 500
    retryable = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(TicketingError):
    status_code = 404


class PreconditionError(TicketingError):
    """The entity is not in a state that allows the requested operation."""

    status_code = 400


class RetryExhaustedError(TicketingError):
    """A retried unit of work kept failing; callers may try again later."""

    status_code = 503
    retryable = True

    def __init__(self, detail: str, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(detail)
        self.attempts = attempts
        self.last_error = last_error


class InvalidQRCodeError(TicketingError):
    # The message is fixed so callers cannot tell which check failed.
    status_code = 400

    def __init__(self, detail: str = "Invalid or tampered code"):
        super().__init__(detail)


class QRGenerationError(TicketingError):
    status_code = 500


class QRKeyError(ValueError):
    """The configured QR encryption key is missing or too weak."""


class PaymentGatewayError(TicketingError):
    """Error raised when the payment gateway call fails."""

    status_code = 502

    def __init__(self, code: str, message: str, retryable: bool = False):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable


class InvalidSignatureError(TicketingError):
    """A webhook arrived with a missing or wrong signature."""

    status_code = 401
