# jgpnr/core/limiter.py
"""
Request limiter shared by the gate-facing routers and main.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Keyed per client IP; gate scanners sit behind distinct devices
limiter = Limiter(key_func=get_remote_address)

SCAN_RATE_LIMIT = "120/minute"
VALIDATE_RATE_LIMIT = "240/minute"
