"""FastAPI dependencies for the API layer."""

from typing import Any, Callable, Dict

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.config import Settings
from app.core.security import decode_access_token, is_token_revoked
from app.database import get_db
from app.models import User, UserRole
from app.services.revocation import RevocationStore
from huddle.realtime import ConnectionRegistry

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_revocations(request: Request) -> RevocationStore:
    return request.app.state.revocations


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.connections


def _credentials_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_payload(
    token: str = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
    revocations: RevocationStore = Depends(get_revocations),
) -> Dict[str, Any]:
    """Decode the bearer token and reject revoked ones."""

    payload = decode_access_token(token, settings=settings)
    if is_token_revoked(payload, revocations):
        raise _credentials_error()
    return payload


def get_current_user(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> User:
    """Retrieve the current user from the JWT token."""

    user = get_user_from_payload(payload, db)
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    return user


def get_user_from_payload(payload: Dict[str, Any], db: Session) -> User:
    """Resolve a user from a decoded token or raise an HTTP 401 error."""

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise _credentials_error()
    user = db.get(User, sub)
    if user is None:
        raise _credentials_error()
    return user


def get_user_from_token(
    token: str, db: Session, *, settings: Settings, revocations: RevocationStore
) -> User:
    """Resolve an active user from a raw token; used by the websocket gate."""

    payload = decode_access_token(token, settings=settings)
    if is_token_revoked(payload, revocations):
        raise _credentials_error()
    user = get_user_from_payload(payload, db)
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    return user


def ensure_minimum_role(user: User, minimum: UserRole) -> None:
    """Ensure the user holds at least ``minimum``, raising HTTP 403 otherwise."""

    if not UserRole(user.role).at_least(minimum):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )


def ensure_role_priority(actor: User, target: User) -> None:
    """Ensure the actor strictly outranks the target."""

    if not UserRole(actor.role).outranks(target.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot moderate a user with an equal or higher role",
        )


def require_role(minimum: UserRole) -> Callable[..., User]:
    """Dependency factory returning the current user when they hold ``minimum``."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        ensure_minimum_role(current_user, minimum)
        return current_user

    return dependency
