"""Schemas for reports and the admin console."""

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator

from app.models.enums import ModerationAction, ReportStatus, UserRole

from .users import Timestamp, UserSummary


class ReportCreate(BaseModel):
    target_user_id: str | None = None
    target_message_id: str | None = None
    reason: constr(strip_whitespace=True, min_length=1)


class ReportedMessage(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    channel_id: str
    content: str


class ReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    reporter: UserSummary
    target_user: UserSummary | None = None
    target_message: ReportedMessage | None = None
    reason: str
    status: ReportStatus
    created_at: Timestamp
    resolved_at: Timestamp | None = None


class ReportStatusUpdate(BaseModel):
    status: ReportStatus

    @field_validator("status")
    @classmethod
    def reject_pending(cls, value: ReportStatus) -> ReportStatus:
        if value is ReportStatus.PENDING:
            raise ValueError("Reports can only be resolved or dismissed")
        return value


class RoleUpdate(BaseModel):
    role: UserRole


class BanRequest(BaseModel):
    reason: constr(strip_whitespace=True, max_length=1000) | None = None


class TimeoutRequest(BaseModel):
    minutes: int = Field(..., gt=0, le=60 * 24 * 28, description="Timeout length in minutes")
    reason: constr(strip_whitespace=True, max_length=1000) | None = None


class ModerationLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    action: ModerationAction
    target_id: str
    admin_id: str | None = None
    admin: UserSummary | None = None
    reason: str | None = None
    created_at: Timestamp
