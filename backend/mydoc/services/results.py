from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session

from mydoc.core.settings import settings
from mydoc.services.transient import (
    describe_error,
    is_transient_error,
    is_unique_violation,
    with_transient_retry,
)

logger = logging.getLogger("mydoc.actions")

BUSY_MESSAGE = "Database occupato. Riprova tra qualche secondo."


class ErrorKind(str, enum.Enum):
    not_found = "not_found"
    conflict = "conflict"
    invalid = "invalid"
    busy = "busy"
    internal = "internal"


@dataclass(frozen=True)
class ActionResult:
    success: bool
    error: str | None = None
    kind: ErrorKind | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind = ErrorKind.invalid) -> "ActionResult":
        return cls(success=False, error=error, kind=kind)

    @property
    def appointment_id(self) -> str | None:
        return self.data.get("appointment_id")


def busy() -> ActionResult:
    return ActionResult.fail(BUSY_MESSAGE, ErrorKind.busy)


def unexpected(action: str, failure_message: str, exc: BaseException, **context: Any) -> ActionResult:
    """Log an unknown failure under a short correlation id and hide details in production."""
    debug_id = uuid.uuid4().hex[:8]
    detail = describe_error(exc)
    logger.error(
        "[%s:%s] Failed: %s",
        action,
        debug_id,
        detail,
        exc_info=exc,
        extra={"correlation_id": debug_id, "context": context},
    )
    if settings.is_production:
        return ActionResult.fail(failure_message, ErrorKind.internal)
    return ActionResult.fail(f"{failure_message} ({debug_id}): {detail}", ErrorKind.internal)


def run_action(
    db: Session,
    fn: Callable[[], ActionResult],
    *,
    action: str,
    failure_message: str,
    conflict_message: str | None = None,
    **context: Any,
) -> ActionResult:
    """Run one transactional command and turn every exception into a result.

    ``fn`` owns its commit; any exception rolls the session back before the
    retry wrapper decides whether to run it again.
    """

    def attempt() -> ActionResult:
        try:
            return fn()
        except Exception:
            db.rollback()
            raise

    try:
        return with_transient_retry(attempt, label=action)
    except Exception as exc:
        if conflict_message and is_unique_violation(exc):
            logger.info("%s rejected by a uniqueness constraint", action)
            return ActionResult.fail(conflict_message, ErrorKind.conflict)
        if is_transient_error(exc):
            logger.warning("%s gave up after retries: %s", action, exc.__class__.__name__)
            return busy()
        return unexpected(action, failure_message, exc, **context)
