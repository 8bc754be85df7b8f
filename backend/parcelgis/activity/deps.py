from fastapi import Depends

from parcelgis.activity.service import ActivityLogger
from parcelgis.db.session import get_session_factory


def get_activity_logger(session_factory=Depends(get_session_factory)) -> ActivityLogger:
    return ActivityLogger(session_factory)
