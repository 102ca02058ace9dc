"""Bearer-token authentication producing explicit principals."""
from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError, jwt

from backend.app_context import get_config

from .orders.models import Principal


logger = logging.getLogger(__name__)


def create_access_token(
    user_id: int,
    *,
    is_admin: bool = False,
    expires_delta: Optional[timedelta] = None,
) -> str:
    config = get_config()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.jwt_exp_minutes))
    payload = {"sub": str(user_id), "is_admin": bool(is_admin), "exp": expire}
    return jwt.encode(payload, config.jwt_secret_key, algorithm=config.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Principal]:
    config = get_config()
    try:
        payload = jwt.decode(token, config.jwt_secret_key, algorithms=[config.jwt_algorithm])
        subject = payload.get("sub")
        if subject is None:
            return None
        user_id = int(subject)
    except (JWTError, ValueError):
        return None
    return Principal(user_id=user_id, is_admin=payload.get("is_admin") is True)


def get_current_principal(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> Principal:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    principal = decode_access_token(authorization.split(" ", 1)[1].strip())
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")
    return principal


def require_admin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator privileges required")
    return principal


def verify_callback_secret(presented: Optional[str]) -> None:
    """Reject payment callbacks that do not carry the configured shared secret."""

    expected = get_config().payment_callback_secret
    if expected is None:
        return
    if not presented or not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected payment callback with missing or invalid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid callback signature")


__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_current_principal",
    "require_admin",
    "verify_callback_secret",
]
