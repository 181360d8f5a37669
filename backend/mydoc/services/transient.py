from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy import exc as sa_exc

from mydoc.core.settings import settings

logger = logging.getLogger("mydoc.transient")

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
TRANSIENT_SQLSTATES = {"40001", "40P01", "55P03", "57014"}
TRANSIENT_SIGNATURES = (
    "sqlite_busy",
    "database is locked",
    "database table is locked",
    "busy",
    "timeout",
    "timed out",
    "could not obtain lock",
    "deadlock",
)
UNIQUE_SQLSTATE = "23505"
UNIQUE_SIGNATURES = ("unique constraint failed", "duplicate key value violates unique constraint")


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, exc):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    cause = exc.__cause__ or getattr(exc, "orig", None)
    if cause is not None and cause is not exc and str(cause) not in message:
        return f"{message} (cause: {cause})"
    return message


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, sa_exc.TimeoutError):
        return True
    if not isinstance(exc, sa_exc.DBAPIError):
        return False
    if isinstance(exc, sa_exc.IntegrityError):
        return False
    if _sqlstate(exc) in TRANSIENT_SQLSTATES:
        return True
    message = describe_error(exc).lower()
    return any(signature in message for signature in TRANSIENT_SIGNATURES)


def is_unique_violation(exc: BaseException) -> bool:
    if not isinstance(exc, sa_exc.IntegrityError):
        return False
    if _sqlstate(exc) == UNIQUE_SQLSTATE:
        return True
    message = describe_error(exc).lower()
    return any(signature in message for signature in UNIQUE_SIGNATURES)


def with_transient_retry(
    fn: Callable[[], T],
    *,
    max_retries: int | None = None,
    backoff_seconds: float | None = None,
    sleep: Callable[[float], None] | None = None,
    label: str = "transaction",
) -> T:
    """Run ``fn`` and re-run it while the store reports lock contention.

    ``fn`` must be a complete transaction that rolls itself back on failure.
    Anything that is not a transient storage error propagates on the first
    occurrence; the last transient error propagates once retries run out.
    """
    if max_retries is None:
        max_retries = settings.booking_max_retries
    if backoff_seconds is None:
        backoff_seconds = settings.booking_retry_backoff_ms / 1000.0

    attempt = 0
    while True:
        try:
            return fn()
        except Exception as exc:
            if not is_transient_error(exc) or attempt >= max_retries:
                raise
            attempt += 1
            sleep_for = backoff_seconds * attempt
            logger.warning(
                "Transient storage error in %s (attempt %s/%s), retrying in %.3fs: %s",
                label,
                attempt,
                max_retries,
                sleep_for,
                exc.__class__.__name__,
            )
            (sleep or time.sleep)(sleep_for)
