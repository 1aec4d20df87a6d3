"""
AES-256-GCM encryption for QR payloads.

Envelope format (all segments lowercase hex):
    {iv}:{auth_tag}:{ciphertext}

The 12-byte IV is random per payload and the 16-byte GCM tag authenticates
the ciphertext, so any edit to a printed code is rejected on decrypt.
Decryption failures all surface as the same InvalidQRCodeError so that a
caller cannot learn which check tripped.
"""

import json
import logging
import math
import os
from collections import Counter
from typing import Any, Dict

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from jgpnr.core.exceptions import InvalidQRCodeError, QRKeyError

logger = logging.getLogger(__name__)

IV_LENGTH = 12
TAG_LENGTH = 16
KEY_HEX_LENGTH = 64

MIN_UNIQUE_CHARS = 14
MIN_ENTROPY_BITS = 3.5
SEQUENTIAL_PATTERNS = ("0123456789abcdef", "fedcba9876543210")


def _shannon_entropy(text: str) -> float:
    counts = Counter(text)
    length = len(text)
    return -sum((n / length) * math.log2(n / length) for n in counts.values())


def validate_key(key_hex: str) -> bytes:
    """
    Check that a hex key is strong enough for production use and return its bytes.

    Raises:
        QRKeyError: the key is missing, malformed or low-entropy
    """
    if not key_hex:
        raise QRKeyError("QR_ENCRYPTION_KEY is not set")

    key = key_hex.strip().lower()
    if len(key) != KEY_HEX_LENGTH:
        raise QRKeyError(f"QR_ENCRYPTION_KEY must be {KEY_HEX_LENGTH} hex characters")
    try:
        raw = bytes.fromhex(key)
    except ValueError:
        raise QRKeyError("QR_ENCRYPTION_KEY must contain only hex characters")

    if len(set(key)) < MIN_UNIQUE_CHARS:
        raise QRKeyError("QR_ENCRYPTION_KEY has too few distinct characters")
    if _shannon_entropy(key) < MIN_ENTROPY_BITS:
        raise QRKeyError("QR_ENCRYPTION_KEY entropy is too low")
    if any(pattern in key for pattern in SEQUENTIAL_PATTERNS):
        raise QRKeyError("QR_ENCRYPTION_KEY contains a sequential pattern")

    return raw


class QRCipher:
    def __init__(self, key_hex: str):
        self._aesgcm = AESGCM(validate_key(key_hex))

    def encrypt(self, payload: Dict[str, Any]) -> str:
        iv = os.urandom(IV_LENGTH)
        plaintext = json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")
        # AESGCM appends the tag to the ciphertext
        sealed = self._aesgcm.encrypt(iv, plaintext, None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, envelope: str) -> Dict[str, Any]:
        parts = envelope.strip().split(":") if envelope else []
        if len(parts) != 3:
            raise InvalidQRCodeError()

        try:
            iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except ValueError:
            raise InvalidQRCodeError()

        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH or not ciphertext:
            raise InvalidQRCodeError()

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext + tag, None)
            payload = json.loads(plaintext.decode("utf-8"))
        except (InvalidTag, ValueError):
            logger.warning("Rejected QR payload that failed authentication")
            raise InvalidQRCodeError()

        if not isinstance(payload, dict):
            raise InvalidQRCodeError()
        return payload

    @staticmethod
    def looks_encrypted(value: str) -> bool:
        """True when ``value`` has the envelope shape (not a plain ticket code)."""
        return value.count(":") == 2
