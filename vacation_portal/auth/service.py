"""Auth service — access-token issue and verification.

Identity resolution happens upstream (SSO); the portal only needs a
signed token whose subject is the caller's verified e-mail.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from vacation_portal.common.exceptions import UnauthenticatedException
from vacation_portal.config import settings


def create_access_token(email: str, *, expires_hours: Optional[int] = None) -> str:
    """Return an encoded access JWT for ``email``."""
    hours = expires_hours if expires_hours is not None else settings.JWT_EXPIRY_HOURS
    payload = {
        "sub": email.strip(),
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(hours=hours),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Validate ``token`` and return the e-mail it was issued for."""
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthenticatedException("Token has expired.")
    except JWTError:
        raise UnauthenticatedException("Invalid token.")

    if payload.get("type") != "access":
        raise UnauthenticatedException("Invalid token type.")

    email = str(payload.get("sub") or "").strip()
    if not email:
        raise UnauthenticatedException()
    return email
