"""Schemas related to chat and direct messages."""

from pydantic import BaseModel, ConfigDict, constr

from .users import Timestamp, UserSummary


class MessageCreate(BaseModel):
    channel_id: str
    content: constr(strip_whitespace=True, min_length=1)


class MessageUpdate(BaseModel):
    content: constr(strip_whitespace=True, min_length=1)


class MessageRead(BaseModel):
    """Serialized representation of a chat message."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    channel_id: str
    user_id: str
    user: UserSummary
    content: str
    created_at: Timestamp
    edited_at: Timestamp | None = None


class DirectMessageCreate(BaseModel):
    receiver_id: str
    content: constr(strip_whitespace=True, min_length=1)


class DirectMessageRead(BaseModel):
    """Representation of a direct message with both participants."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    receiver_id: str
    sender: UserSummary
    receiver: UserSummary
    content: str
    created_at: Timestamp


class ConversationRead(BaseModel):
    """Conversation partner with the time of the latest exchanged message."""

    partner: UserSummary
    last_message_at: Timestamp
