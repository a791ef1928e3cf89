"""Schemas related to user profiles."""

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, constr

from app.models.base import as_aware
from app.models.enums import UserRole

Timestamp = Annotated[datetime, AfterValidator(as_aware)]


class UserSummary(BaseModel):
    """Minimal user information embedded in messages, channels and logs."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    display_name: str | None = None
    role: UserRole = UserRole.USER


class PublicUser(UserSummary):
    """Public profile of any user."""

    bio: str | None = None
    created_at: Timestamp


class UserRead(PublicUser):
    """Full representation, returned to the user themselves and to moderators."""

    is_banned: bool = False
    timeout_until: Timestamp | None = None
    updated_at: Timestamp


class UserProfileUpdate(BaseModel):
    """Payload for updating the caller's profile; omitted fields stay untouched."""

    username: constr(strip_whitespace=True, min_length=3, max_length=64) | None = None
    display_name: constr(strip_whitespace=True, max_length=128) | None = Field(
        default=None,
        description="New display name. An empty string resets it to the username.",
    )
    bio: constr(max_length=500) | None = None


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: constr(min_length=6, max_length=128)
