"""HTTP endpoints for managing chat messages."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.channels import get_channel_or_404
from app.api.deps import get_app_settings, get_current_user, get_registry
from app.config import Settings
from app.database import get_db
from app.models import Message, ModerationAction, User, UserRole
from app.models.base import utcnow
from app.schemas import MessageCreate, MessageRead, MessageUpdate
from app.services.moderation import record_action
from app.services.realtime_events import (
    publish_message_deleted,
    publish_message_updated,
    publish_new_message,
)
from huddle.realtime import ConnectionRegistry

router = APIRouter(prefix="/messages", tags=["messages"])


def _get_message(message_id: str, db: Session) -> Message:
    stmt = select(Message).where(Message.id == message_id).options(selectinload(Message.user))
    message = db.execute(stmt).scalar_one_or_none()
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return message


def ensure_content_length(content: str, settings: Settings) -> str:
    if len(content) > settings.chat_message_max_length:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Message exceeds maximum length of {settings.chat_message_max_length} characters",
        )
    return content


def ensure_not_timed_out(user: User) -> None:
    if user.is_timed_out():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are timed out and cannot send messages",
        )


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    registry: ConnectionRegistry = Depends(get_registry),
) -> Message:
    """Post a message to a channel and notify connected clients."""

    ensure_not_timed_out(current_user)
    content = ensure_content_length(payload.content, settings)
    channel = get_channel_or_404(payload.channel_id, db)

    message = Message(channel_id=channel.id, user_id=current_user.id, content=content)
    db.add(message)
    db.commit()
    db.refresh(message)

    await publish_new_message(registry, message)
    return message


@router.patch("/{message_id}", response_model=MessageRead)
async def update_message(
    message_id: str,
    payload: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    registry: ConnectionRegistry = Depends(get_registry),
) -> Message:
    """Edit a message. Only its author may do so, regardless of role."""

    message = _get_message(message_id, db)
    if message.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author can edit this message",
        )
    message.content = ensure_content_length(payload.content, settings)
    message.edited_at = utcnow()
    db.commit()
    db.refresh(message)

    await publish_message_updated(registry, message)
    return message


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: str,
    reason: str | None = Query(default=None, max_length=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry),
) -> Response:
    """Delete a message as its author or as a moderator."""

    message = _get_message(message_id, db)
    is_author = message.user_id == current_user.id
    if not is_author and not UserRole(current_user.role).at_least(UserRole.MODERATOR):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )

    channel_id = message.channel_id
    if not is_author:
        record_action(
            db,
            action=ModerationAction.DELETE_MESSAGE,
            target_id=message.user_id,
            admin=current_user,
            reason=reason,
        )
    db.delete(message)
    db.commit()

    await publish_message_deleted(registry, channel_id, message_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
