"""Authentication API endpoints."""

from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import (
    get_app_settings,
    get_revocations,
    get_current_user,
    get_token_payload,
)
from app.config import Settings
from app.core.security import (
    create_access_token,
    get_password_hash,
    revoke_token,
    verify_password,
)
from app.database import get_db
from app.models import User, UserRole
from app.schemas import AuthResponse, Credentials, UserRead
from app.services.revocation import RevocationStore

router = APIRouter()


def find_user_by_username(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def create_user(db: Session, credentials: Credentials, *, role: UserRole = UserRole.USER) -> User:
    """Insert and commit a new account, rejecting taken usernames."""

    if find_user_by_username(db, credentials.username) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username is already taken",
        )
    user = User(
        username=credentials.username,
        hashed_password=get_password_hash(credentials.password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def issue_token(user: User, settings: Settings) -> AuthResponse:
    expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token({"sub": user.id}, expires_delta=expires, settings=settings)
    return AuthResponse(
        user=UserRead.model_validate(user),
        access_token=access_token,
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    credentials: Credentials,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """Register a new user and sign them in."""

    user = create_user(db, credentials)
    return issue_token(user, settings)


@router.post("/login", response_model=AuthResponse)
def login_user(
    credentials: Credentials,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """Authenticate a user and return a JWT access token."""

    user = find_user_by_username(db, credentials.username)
    if user is None or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    return issue_token(user, settings)


@router.post("/logout")
def logout_user(
    payload: Dict[str, Any] = Depends(get_token_payload),
    revocations: RevocationStore = Depends(get_revocations),
) -> dict[str, str]:
    """Revoke the presented access token."""

    revoke_token(payload, revocations)
    return {"status": "ok"}


@router.get("/user", response_model=UserRead)
def read_current_user(current_user: User = Depends(get_current_user)) -> User:
    return current_user
