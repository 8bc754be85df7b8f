from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from parcelgis.activity.deps import get_activity_logger
from parcelgis.activity.service import ActivityLogger
from parcelgis.admin.schemas import AdminActivityResponse, AdminUsersResponse
from parcelgis.admin.service import list_activity, list_users
from parcelgis.auth.deps import require_admin
from parcelgis.auth.models import User
from parcelgis.db.session import get_db

router = APIRouter()


@router.get("/users", response_model=AdminUsersResponse)
def admin_users(
    background_tasks: BackgroundTasks,
    limit: int = Query(default=200, ge=1, le=500),
    offset: int = Query(default=0, ge=0, le=10_000),
    search: str | None = Query(default=None, max_length=120),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    search = (search or "").strip() or None
    response = list_users(db, limit=limit, offset=offset, search=search)
    background_tasks.add_task(
        activity.record,
        "admin_users_viewed",
        {"search": search, "limit": limit, "offset": offset, "resultCount": response.count},
        admin.id,
    )
    return response


@router.get("/activity", response_model=AdminActivityResponse)
def admin_activity(
    background_tasks: BackgroundTasks,
    limit: int = Query(default=200, ge=1, le=500),
    offset: int = Query(default=0, ge=0, le=10_000),
    user_id: int | None = Query(default=None, alias="userId", gt=0),
    event_type: str | None = Query(default=None, alias="eventType", min_length=1, max_length=100),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    event_type = (event_type or "").strip() or None
    response = list_activity(db, limit=limit, offset=offset, user_id=user_id, event_type=event_type)
    background_tasks.add_task(
        activity.record,
        "admin_activity_viewed",
        {
            "userId": user_id,
            "eventType": event_type,
            "limit": limit,
            "offset": offset,
            "resultCount": response.count,
        },
        admin.id,
    )
    return response
