"""Channel-specific API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user
from app.database import get_db
from app.models import Channel, Message, User, UserRole
from app.schemas import ChannelCreate, ChannelRead, ChannelUpdate, MessageRead

router = APIRouter(prefix="/channels", tags=["channels"])


def get_channel_or_404(channel_id: str, db: Session) -> Channel:
    channel = db.get(Channel, channel_id)
    if channel is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Channel not found")
    return channel


def _ensure_can_manage(channel: Channel, user: User) -> None:
    if channel.created_by == user.id or UserRole(user.role).at_least(UserRole.ADMIN):
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only the channel creator or an admin can manage this channel",
    )


@router.get("", response_model=list[ChannelRead])
def list_channels(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Channel]:
    stmt = select(Channel).options(selectinload(Channel.creator)).order_by(Channel.created_at)
    return list(db.execute(stmt).scalars())


@router.post("", response_model=ChannelRead, status_code=status.HTTP_201_CREATED)
def create_channel(
    payload: ChannelCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Channel:
    channel = Channel(
        name=payload.name,
        description=payload.description or None,
        created_by=current_user.id,
    )
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel


@router.get("/{channel_id}", response_model=ChannelRead)
def read_channel(
    channel_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Channel:
    return get_channel_or_404(channel_id, db)


@router.patch("/{channel_id}", response_model=ChannelRead)
def update_channel(
    channel_id: str,
    payload: ChannelUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Channel:
    channel = get_channel_or_404(channel_id, db)
    _ensure_can_manage(channel, current_user)

    fields = payload.model_fields_set
    if "name" in fields:
        if not payload.name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Channel name is required")
        channel.name = payload.name
    if "description" in fields:
        channel.description = payload.description or None
    db.commit()
    db.refresh(channel)
    return channel


@router.delete("/{channel_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_channel(
    channel_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    channel = get_channel_or_404(channel_id, db)
    _ensure_can_manage(channel, current_user)
    db.delete(channel)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{channel_id}/messages", response_model=list[MessageRead])
def list_channel_messages(
    channel_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Message]:
    """Return the latest ``limit`` messages of a channel, oldest first."""

    get_channel_or_404(channel_id, db)
    stmt = (
        select(Message)
        .where(Message.channel_id == channel_id)
        .options(selectinload(Message.user))
        .order_by(Message.created_at.desc())
        .limit(limit)
    )
    messages = list(db.execute(stmt).scalars())
    messages.reverse()
    return messages
