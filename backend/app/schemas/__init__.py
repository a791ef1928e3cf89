"""Pydantic schemas for API payloads."""

from .auth import AuthResponse, Credentials, SetupStatus
from .channels import ChannelCreate, ChannelRead, ChannelUpdate
from .messages import (
    ConversationRead,
    DirectMessageCreate,
    DirectMessageRead,
    MessageCreate,
    MessageRead,
    MessageUpdate,
)
from .moderation import (
    BanRequest,
    ModerationLogRead,
    ReportCreate,
    ReportRead,
    ReportStatusUpdate,
    RoleUpdate,
    TimeoutRequest,
)
from .users import PasswordChange, PublicUser, UserProfileUpdate, UserRead, UserSummary

__all__ = [
    "AuthResponse",
    "Credentials",
    "SetupStatus",
    "ChannelCreate",
    "ChannelRead",
    "ChannelUpdate",
    "ConversationRead",
    "DirectMessageCreate",
    "DirectMessageRead",
    "MessageCreate",
    "MessageRead",
    "MessageUpdate",
    "BanRequest",
    "ModerationLogRead",
    "ReportCreate",
    "ReportRead",
    "ReportStatusUpdate",
    "RoleUpdate",
    "TimeoutRequest",
    "PasswordChange",
    "PublicUser",
    "UserProfileUpdate",
    "UserRead",
    "UserSummary",
]
