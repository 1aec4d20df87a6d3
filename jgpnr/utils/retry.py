# jgpnr/utils/retry.py
"""
Retry combinator for units of work that can lose a uniqueness race or a
serialization conflict.
"""
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError

from jgpnr.core.exceptions import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 0.05

# serialization_failure, deadlock_detected
CONFLICT_SQLSTATES = {"40001", "40P01"}


def is_transient(error: BaseException) -> bool:
    """
    OperationalErrors only qualify when PostgreSQL aborted the transaction
    for a serialization failure or deadlock; a lost connection does not.
    Anything else already matched ``retry_on``.
    """
    if isinstance(error, OperationalError):
        orig = error.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        return code in CONFLICT_SQLSTATES
    return True


def retry(
    fn: Callable[[int], T],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
    retry_on: Tuple[Type[BaseException], ...] = (IntegrityError, OperationalError),
    retry_if: Callable[[BaseException], bool] = is_transient,
    on_retry: Optional[Callable[[BaseException], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn(attempt)`` until it succeeds or ``max_attempts`` is reached.

    ``fn`` receives the 1-based attempt number and must regenerate anything
    that caused the previous collision. ``on_retry`` runs after every failed
    attempt (typically a session rollback). Delays grow exponentially from
    ``base_delay``. Errors outside ``retry_on``, or rejected by ``retry_if``,
    propagate immediately.

    Raises:
        RetryExhaustedError: every attempt failed with a retryable error
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return fn(attempt)
        except retry_on as e:
            if not retry_if(e):
                raise
            last_error = e
            if on_retry is not None:
                on_retry(e)
            if attempt == max_attempts:
                break
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(
                f"Attempt {attempt}/{max_attempts} failed with {type(e).__name__}, "
                f"retrying in {delay:.2f}s"
            )
            sleep(delay)

    logger.error(f"Giving up after {max_attempts} attempts: {last_error}")
    raise RetryExhaustedError(
        "Could not complete the operation, please try again",
        attempts=max_attempts,
        last_error=last_error,
    )
