"""Database models package."""

from .base import Base
from .chat import Channel, DirectMessage, Message, ModerationLog, Report, User
from .enums import ModerationAction, ReportStatus, UserRole

__all__ = [
    "Base",
    "User",
    "Channel",
    "Message",
    "DirectMessage",
    "Report",
    "ModerationLog",
    "UserRole",
    "ReportStatus",
    "ModerationAction",
]
