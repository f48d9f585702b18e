from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from core.settings import get_settings


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _encode(payload: Dict[str, Any]) -> str:
    settings = get_settings()
    return jwt.encode(
        payload,
        settings.jwt_secret.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    subject: str, extra_claims: Dict[str, Any] | None = None
) -> str:
    """Create a signed JWT access token for a user email.

    Args:
        subject: The user's email, used as ``sub``.
        extra_claims: Optional additional claims, e.g. ``company_id`` and
            ``role`` for clients that want to render without calling ``/me``.

    Returns:
        Encoded JWT access token string.
    """

    settings = get_settings()
    expire = _now_utc() + timedelta(minutes=settings.access_token_expires_minutes)
    payload: Dict[str, Any] = {"sub": subject, "exp": expire}
    if extra_claims:
        payload.update(extra_claims)
    return _encode(payload)


def create_refresh_token(subject: str) -> str:
    settings = get_settings()
    expire = _now_utc() + timedelta(days=settings.refresh_token_expires_days)
    return _encode({"sub": subject, "exp": expire, "typ": "refresh"})


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT.

    Raises:
        jwt.PyJWTError: If the token is malformed, expired or not signed
            with the configured secret.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )
