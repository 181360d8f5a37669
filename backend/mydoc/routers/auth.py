import logging

from fastapi import APIRouter, HTTPException, status

from mydoc.core.security import create_access_token, verify_practice_password
from mydoc.core.settings import settings
from mydoc.deps import PRACTICE_SUBJECT
from mydoc.schemas.auth import LoginRequest, Token

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger("mydoc.auth")


@router.post("/login", response_model=Token)
def login(payload: LoginRequest):
    if not settings.admin_password:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Configurazione server non valida",
        )
    if not verify_practice_password(payload.password, settings.admin_password):
        logger.info("Rejected login attempt")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Password non valida")
    token = create_access_token(
        subject=PRACTICE_SUBJECT,
        secret=settings.secret_key or "",
        alg=settings.jwt_alg,
        expires_minutes=settings.access_token_expire_minutes,
    )
    return Token(access_token=token)
