"""Profile management API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_registry
from app.core.security import get_password_hash, verify_password
from app.database import get_db
from app.models import User
from app.schemas import PasswordChange, PublicUser, UserProfileUpdate, UserRead
from app.services.realtime_events import publish_user_updated
from huddle.realtime import ConnectionRegistry

router = APIRouter(tags=["profile"])


@router.patch("/user", response_model=UserRead)
async def update_profile(
    payload: UserProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry),
) -> User:
    """Update mutable profile fields for the current user."""

    fields = payload.model_fields_set
    changed = False
    if "username" in fields and payload.username and payload.username != current_user.username:
        taken = db.execute(
            select(User.id).where(User.username == payload.username, User.id != current_user.id)
        ).first()
        if taken is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username is already taken",
            )
        current_user.username = payload.username
        changed = True
    for name in ("display_name", "bio"):
        value = getattr(payload, name) or None
        if name in fields and value != getattr(current_user, name):
            setattr(current_user, name, value)
            changed = True

    if not changed:
        return current_user

    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    await publish_user_updated(registry)
    return current_user


@router.post("/user/password")
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, str]:
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )
    current_user.hashed_password = get_password_hash(payload.new_password)
    db.add(current_user)
    db.commit()
    return {"status": "ok"}


@router.get("/users/{user_id}", response_model=PublicUser)
def read_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
