# jgpnr/services/ticket_management/codes.py
import secrets
from datetime import datetime

from jgpnr.core.config import settings

# Excludes 0/O and 1/I/L so codes survive being read aloud or hand-typed.
CODE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
ORDER_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"  # Crockford base32
SUFFIX_LENGTH = 8


def _random_suffix(alphabet: str, length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_order_number(now: datetime) -> str:
    """ORD-YYYYMMDD-XXXXXXXX"""
    return f"ORD-{now.strftime('%Y%m%d')}-{_random_suffix(ORDER_ALPHABET)}"


def generate_ticket_code(now: datetime) -> str:
    """JGPNR-YYYY-XXXXXXXX"""
    return f"{settings.TICKET_CODE_PREFIX}-{now.year}-{_random_suffix(CODE_ALPHABET)}"
