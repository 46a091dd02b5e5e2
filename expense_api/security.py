"""Password hashing and access tokens."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Final, Optional

import bcrypt
from fastapi import Request
from jose import JWTError, jwt

from . import models
from .config import Settings, get_settings
from .errors import AuthError, ValidationError

ALGORITHM: Final[str] = "HS256"
ACCESS_TOKEN_COOKIE: Final[str] = "accessToken"
# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES: Final[int] = 72


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user: models.User,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> str:
    """Sign a token identifying ``user`` for the configured lifetime."""

    settings = settings or get_settings()
    issued = now or datetime.now(tz=UTC)
    claims = {
        "sub": user.id,
        "email": user.email,
        "username": user.username,
        "exp": issued + timedelta(minutes=settings.access_token_expire_minutes),
    }
    return jwt.encode(claims, settings.access_token_secret, algorithm=ALGORITHM)


def decode_access_token(token: str, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.access_token_secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise AuthError("Invalid access token") from exc
    if not payload.get("sub"):
        raise AuthError("Invalid access token")
    return payload


def token_from_request(request: Request) -> Optional[str]:
    """Return the token from the ``accessToken`` cookie or a bearer header."""

    cookie = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if cookie:
        return cookie
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header.split(" ", 1)[1].strip() or None
    return None


def optional_user_id(request: Request) -> Optional[str]:
    """FastAPI dependency: the caller's user id, or ``None`` when anonymous.

    A token that is present but invalid or expired is rejected with
    :class:`AuthError` rather than treated as anonymous.
    """

    token = token_from_request(request)
    if token is None:
        return None
    return str(decode_access_token(token)["sub"])
