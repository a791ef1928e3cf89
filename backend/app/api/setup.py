"""First-run setup: create the initial administrator."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.auth import create_user, issue_token
from app.api.deps import get_app_settings
from app.config import Settings
from app.database import get_db
from app.models import User, UserRole
from app.schemas import AuthResponse, Credentials, SetupStatus

router = APIRouter(prefix="/setup", tags=["setup"])


def admin_exists(db: Session) -> bool:
    stmt = select(User.id).where(User.role == UserRole.ADMIN).limit(1)
    return db.execute(stmt).first() is not None


@router.get("/status", response_model=SetupStatus)
def setup_status(db: Session = Depends(get_db)) -> SetupStatus:
    return SetupStatus(needs_setup=not admin_exists(db))


@router.post("/admin", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def create_first_admin(
    credentials: Credentials,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    if admin_exists(db):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Setup has already been completed",
        )
    user = create_user(db, credentials, role=UserRole.ADMIN)
    return issue_token(user, settings)
