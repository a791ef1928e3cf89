"""Security helpers for password hashing and token management."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext

from app.config import Settings, get_settings
from app.services.revocation import RevocationStore

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hashed counterpart."""

    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storing in the database."""

    return pwd_context.hash(password)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: timedelta | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """Create a signed JWT access token with an expiration time and a unique id."""

    settings = settings or get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, *, settings: Settings | None = None) -> Dict[str, Any]:
    """Decode and validate a JWT access token."""

    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Could not validate credentials") from exc
    return payload


def revoke_token(payload: Dict[str, Any], revocations: RevocationStore) -> None:
    """Remember ``payload['jti']`` as revoked until the token would expire anyway."""

    token_id = payload.get("jti")
    if not token_id:
        return
    expires_at = payload.get("exp")
    ttl: int | None = None
    if isinstance(expires_at, (int, float)):
        ttl = max(int(expires_at - datetime.now(timezone.utc).timestamp()), 1)
    revocations.revoke(str(token_id), ttl)


def is_token_revoked(payload: Dict[str, Any], revocations: RevocationStore) -> bool:
    token_id = payload.get("jti")
    return bool(token_id) and revocations.is_revoked(str(token_id))
