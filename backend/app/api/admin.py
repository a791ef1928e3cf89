"""Admin console: user management and moderation."""

from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import ensure_role_priority, get_registry, require_role
from app.database import get_db
from app.models import ModerationAction, ModerationLog, User, UserRole
from app.models.base import utcnow
from app.schemas import BanRequest, ModerationLogRead, RoleUpdate, TimeoutRequest, UserRead
from app.services.moderation import record_action
from app.services.realtime_events import publish_user_updated
from huddle.realtime import ConnectionRegistry

router = APIRouter(prefix="/admin", tags=["admin"])

require_moderator = require_role(UserRole.MODERATOR)
require_admin = require_role(UserRole.ADMIN)


def _get_user_or_404(user_id: str, db: Session) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _ensure_not_self(actor: User, target: User, action: str) -> None:
    if actor.id == target.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You cannot {action} yourself",
        )


@router.get("/users", response_model=list[UserRead])
def list_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_moderator),
) -> list[User]:
    return list(db.execute(select(User).order_by(User.created_at)).scalars())


@router.patch("/users/{user_id}/role", response_model=UserRead)
async def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    registry: ConnectionRegistry = Depends(get_registry),
) -> User:
    target = _get_user_or_404(user_id, db)
    _ensure_not_self(current_user, target, "change the role of")
    target.role = payload.role
    db.commit()
    db.refresh(target)

    await publish_user_updated(registry)
    return target


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    registry: ConnectionRegistry = Depends(get_registry),
) -> Response:
    target = _get_user_or_404(user_id, db)
    _ensure_not_self(current_user, target, "delete")
    db.delete(target)
    db.commit()

    await publish_user_updated(registry)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/users/{user_id}/ban", response_model=UserRead)
async def ban_user(
    user_id: str,
    payload: BanRequest | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    registry: ConnectionRegistry = Depends(get_registry),
) -> User:
    target = _get_user_or_404(user_id, db)
    _ensure_not_self(current_user, target, "ban")
    ensure_role_priority(current_user, target)

    target.is_banned = True
    record_action(
        db,
        action=ModerationAction.BAN_USER,
        target_id=target.id,
        admin=current_user,
        reason=payload.reason if payload else None,
    )
    db.commit()
    db.refresh(target)

    await publish_user_updated(registry)
    return target


@router.post("/users/{user_id}/timeout", response_model=UserRead)
async def timeout_user(
    user_id: str,
    payload: TimeoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_moderator),
    registry: ConnectionRegistry = Depends(get_registry),
) -> User:
    target = _get_user_or_404(user_id, db)
    _ensure_not_self(current_user, target, "time out")
    ensure_role_priority(current_user, target)

    target.timeout_until = utcnow() + timedelta(minutes=payload.minutes)
    record_action(
        db,
        action=ModerationAction.TIMEOUT_USER,
        target_id=target.id,
        admin=current_user,
        reason=payload.reason,
    )
    db.commit()
    db.refresh(target)

    await publish_user_updated(registry)
    return target


@router.get("/logs", response_model=list[ModerationLogRead])
def list_moderation_logs(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_moderator),
) -> list[ModerationLog]:
    stmt = (
        select(ModerationLog)
        .options(selectinload(ModerationLog.admin))
        .order_by(ModerationLog.created_at.desc())
    )
    return list(db.execute(stmt).scalars())
