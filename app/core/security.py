from datetime import datetime, timedelta, timezone
from typing import Any, Union, Optional

from jose import jwt, JWTError
from pydantic import ValidationError
import logging

from app.core.config import settings
from app.schemas.token import TokenPayload

logger = logging.getLogger(__name__)

ALGORITHM = settings.ALGORITHM


def _create_token(subject: Union[str, Any], secret: str, expires_delta: timedelta, token_type: str) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {"exp": expire, "sub": str(subject), "type": token_type}
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_access_token(
    subject: Union[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Crea un nuevo token de acceso JWT.
    """
    return _create_token(
        subject,
        settings.SECRET_KEY,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "access",
    )


def create_refresh_token(
    subject: Union[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """
    Crea un nuevo token de refresco JWT, firmado con una clave distinta a la de acceso.
    """
    return _create_token(
        subject,
        settings.REFRESH_TOKEN_SECRET_KEY,
        expires_delta or timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
        "refresh",
    )


def _decode(token: str, secret: str, expected_type: str) -> Optional[TokenPayload]:
    try:
        payload_dict = jwt.decode(token, secret, algorithms=[ALGORITHM])
        payload = TokenPayload(**payload_dict)
    except (JWTError, ValidationError, KeyError) as e:
        logger.error(f"Error decodificando token de {expected_type}: {e}")
        return None
    if payload.type != expected_type:
        logger.warning(f"Tipo de token inesperado: se esperaba '{expected_type}', llegó '{payload.type}'")
        return None
    return payload


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """
    Decodifica un token de acceso, valida su estructura y expiración.
    """
    return _decode(token, settings.SECRET_KEY, "access")


def decode_refresh_token(token: str) -> Optional[TokenPayload]:
    """
    Decodifica un token de refresco, valida su estructura y expiración.
    """
    return _decode(token, settings.REFRESH_TOKEN_SECRET_KEY, "refresh")
