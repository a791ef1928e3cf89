"""Core utilities for the Huddle backend."""

from .security import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    is_token_revoked,
    revoke_token,
    verify_password,
)

__all__ = [
    "create_access_token",
    "decode_access_token",
    "get_password_hash",
    "verify_password",
    "revoke_token",
    "is_token_revoked",
]
