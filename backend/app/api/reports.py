"""User reports and their review queue."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_app_settings, get_current_user, require_role
from app.config import Settings
from app.database import get_db
from app.models import Message, Report, ReportStatus, User, UserRole
from app.models.base import utcnow
from app.schemas import ReportCreate, ReportRead, ReportStatusUpdate

router = APIRouter(tags=["reports"])

_REPORT_LOAD_OPTIONS = (
    selectinload(Report.reporter),
    selectinload(Report.target_user),
    selectinload(Report.target_message),
)


@router.post("/reports", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
) -> Report:
    if not payload.target_user_id and not payload.target_message_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A report needs a target user or message",
        )
    if len(payload.reason) > settings.report_reason_max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Reason exceeds maximum length of {settings.report_reason_max_length} characters",
        )
    if payload.target_user_id and db.get(User, payload.target_user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if payload.target_message_id and db.get(Message, payload.target_message_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")

    report = Report(
        reporter_id=current_user.id,
        target_user_id=payload.target_user_id or None,
        target_message_id=payload.target_message_id or None,
        reason=payload.reason,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


@router.get("/admin/reports", response_model=list[ReportRead])
def list_reports(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MODERATOR)),
) -> list[Report]:
    stmt = select(Report).options(*_REPORT_LOAD_OPTIONS).order_by(Report.created_at.desc())
    return list(db.execute(stmt).scalars())


@router.patch("/admin/reports/{report_id}", response_model=ReportRead)
def update_report_status(
    report_id: str,
    payload: ReportStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.MODERATOR)),
) -> Report:
    report = db.get(Report, report_id)
    if report is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    report.status = payload.status
    report.resolved_at = utcnow() if payload.status is not ReportStatus.PENDING else None
    db.commit()
    db.refresh(report)
    return report
