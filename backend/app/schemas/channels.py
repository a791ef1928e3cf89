"""Schemas for channel endpoints."""

from pydantic import BaseModel, ConfigDict, constr

from .users import Timestamp, UserSummary


class ChannelCreate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    description: constr(strip_whitespace=True, max_length=500) | None = None


class ChannelUpdate(BaseModel):
    name: constr(strip_whitespace=True, min_length=1, max_length=100) | None = None
    description: constr(strip_whitespace=True, max_length=500) | None = None


class ChannelRead(BaseModel):
    """Serialized channel with its creator."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    created_by: str | None = None
    creator: UserSummary | None = None
    created_at: Timestamp
