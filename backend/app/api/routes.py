from fastapi import APIRouter

from app.api.admin import router as admin_router
from app.api.auth import router as auth_router
from app.api.channels import router as channels_router
from app.api.dm import router as dm_router
from app.api.messages import router as messages_router
from app.api.profile import router as profile_router
from app.api.reports import router as reports_router
from app.api.setup import router as setup_router

router = APIRouter()

router.include_router(auth_router, tags=["auth"])
router.include_router(setup_router)
router.include_router(profile_router)
router.include_router(channels_router)
router.include_router(messages_router)
router.include_router(dm_router)
router.include_router(reports_router)
router.include_router(admin_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the Huddle API"}
