from datetime import datetime

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

from mydoc.core.clock import utcnow
from mydoc.core.settings import settings
from mydoc.services.results import ActionResult, ErrorKind

PRACTICE_SUBJECT = "practice"

ERROR_STATUS = {
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.invalid: status.HTTP_400_BAD_REQUEST,
    ErrorKind.busy: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_current_session(authorization: str | None = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(token, settings.secret_key or "", algorithms=[settings.jwt_alg])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    subject = payload.get("sub")
    if subject != PRACTICE_SUBJECT:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return subject


def get_clock():
    return utcnow


def get_now(clock=Depends(get_clock)) -> datetime:
    return clock()


def raise_for_result(result: ActionResult) -> ActionResult:
    if result.success:
        return result
    code = ERROR_STATUS.get(result.kind or ErrorKind.invalid, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=code, detail=result.error)
