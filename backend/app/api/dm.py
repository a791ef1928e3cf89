"""Direct messaging endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import and_, case, desc, func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_app_settings, get_current_user, get_registry
from app.api.messages import ensure_content_length, ensure_not_timed_out
from app.config import Settings
from app.database import get_db
from app.models import DirectMessage, User
from app.schemas import ConversationRead, DirectMessageCreate, DirectMessageRead, UserSummary
from app.services.realtime_events import publish_direct_message
from huddle.realtime import ConnectionRegistry

router = APIRouter(prefix="/dms", tags=["direct-messages"])

_DM_LOAD_OPTIONS = (selectinload(DirectMessage.sender), selectinload(DirectMessage.receiver))


@router.post("", response_model=DirectMessageRead, status_code=status.HTTP_201_CREATED)
async def send_direct_message(
    payload: DirectMessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    registry: ConnectionRegistry = Depends(get_registry),
) -> DirectMessage:
    ensure_not_timed_out(current_user)
    if payload.receiver_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot send a direct message to yourself",
        )
    receiver = db.get(User, payload.receiver_id)
    if receiver is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    content = ensure_content_length(payload.content, settings)

    dm = DirectMessage(sender_id=current_user.id, receiver_id=receiver.id, content=content)
    db.add(dm)
    db.commit()
    db.refresh(dm)

    await publish_direct_message(registry, dm)
    return dm


@router.get("/conversations", response_model=list[ConversationRead])
def list_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[ConversationRead]:
    """Return everyone the caller has exchanged messages with, most recent first."""

    user_id = current_user.id
    partner_id = case(
        (DirectMessage.sender_id == user_id, DirectMessage.receiver_id),
        else_=DirectMessage.sender_id,
    ).label("partner_id")
    last_at = func.max(DirectMessage.created_at).label("last_message_at")
    stmt = (
        select(partner_id, last_at)
        .where(or_(DirectMessage.sender_id == user_id, DirectMessage.receiver_id == user_id))
        .group_by(partner_id)
        .order_by(desc(last_at))
    )
    rows = db.execute(stmt).all()
    if not rows:
        return []

    partners = {
        user.id: user
        for user in db.execute(select(User).where(User.id.in_([row.partner_id for row in rows]))).scalars()
    }
    return [
        ConversationRead(
            partner=UserSummary.model_validate(partners[row.partner_id]),
            last_message_at=row.last_message_at,
        )
        for row in rows
        if row.partner_id in partners
    ]


@router.get("/{user_id}", response_model=list[DirectMessageRead])
def read_conversation(
    user_id: str,
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[DirectMessage]:
    """Return the thread between the caller and ``user_id``, oldest first."""

    if db.get(User, user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    stmt = (
        select(DirectMessage)
        .where(
            or_(
                and_(DirectMessage.sender_id == current_user.id, DirectMessage.receiver_id == user_id),
                and_(DirectMessage.sender_id == user_id, DirectMessage.receiver_id == current_user.id),
            )
        )
        .options(*_DM_LOAD_OPTIONS)
        .order_by(DirectMessage.created_at.desc())
        .limit(limit)
    )
    messages = list(db.execute(stmt).scalars())
    messages.reverse()
    return messages
