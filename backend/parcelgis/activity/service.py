import logging
from typing import Any, Callable

from sqlalchemy.orm import Session

from parcelgis.activity.models import UserActivityLog

logger = logging.getLogger(__name__)


def log_user_activity(
    session_factory: Callable[[], Session],
    event_type: str,
    metadata: dict[str, Any] | None = None,
    user_id: int | None = None,
) -> None:
    """Append an activity row using a dedicated session.

    Best-effort: a failure here is logged and dropped so it can never fail
    or roll back the request that produced the event.
    """
    db = session_factory()
    try:
        db.add(
            UserActivityLog(
                user_id=user_id,
                event_type=event_type,
                metadata_json=dict(metadata or {}),
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Failed to log user activity event=%s user_id=%s", event_type, user_id, exc_info=True)
    finally:
        db.close()


class ActivityLogger:
    """Fire-and-forget sink for ``user_activity_logs``."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(self, event_type: str, metadata: dict[str, Any] | None = None, user_id: int | None = None) -> None:
        log_user_activity(self.session_factory, event_type, metadata, user_id)
