from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Global roles, totally ordered from least to most privileged."""

    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @property
    def level(self) -> int:
        return _ROLE_LEVELS[self]

    def at_least(self, other: "UserRole") -> bool:
        return self.level >= UserRole(other).level

    def outranks(self, other: "UserRole") -> bool:
        return self.level > UserRole(other).level


_ROLE_LEVELS: dict[UserRole, int] = {
    UserRole.USER: 0,
    UserRole.MODERATOR: 10,
    UserRole.ADMIN: 20,
}


class ReportStatus(str, Enum):
    """Lifecycle states of a user report."""

    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class ModerationAction(str, Enum):
    """Actions recorded in the moderation log."""

    DELETE_MESSAGE = "delete_message"
    TIMEOUT_USER = "timeout_user"
    BAN_USER = "ban_user"
