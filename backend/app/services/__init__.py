"""Application service helpers."""

from .revocation import RevocationStore, build_revocation_store
from .moderation import record_action
from .realtime_events import (
    publish,
    publish_direct_message,
    publish_message_deleted,
    publish_message_updated,
    publish_new_message,
    publish_user_updated,
)

__all__ = [
    "RevocationStore",
    "build_revocation_store",
    "record_action",
    "publish",
    "publish_direct_message",
    "publish_message_deleted",
    "publish_message_updated",
    "publish_new_message",
    "publish_user_updated",
]
