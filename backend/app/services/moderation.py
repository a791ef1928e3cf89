"""Moderation bookkeeping shared by the message and admin endpoints."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.models import ModerationAction, ModerationLog, User


logger = logging.getLogger(__name__)


def record_action(
    db: Session,
    *,
    action: ModerationAction,
    target_id: str,
    admin: User,
    reason: str | None = None,
) -> ModerationLog:
    """Add a moderation log entry to the current transaction."""

    entry = ModerationLog(action=action, target_id=target_id, admin_id=admin.id, reason=reason or None)
    db.add(entry)
    logger.info(
        "Moderation action %s on %s by %s", action.value, target_id, admin.id
    )
    return entry
