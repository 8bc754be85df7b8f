from datetime import datetime

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from parcelgis.activity.models import UserActivityLog
from parcelgis.admin.schemas import (
    ActivityEventOut,
    ActivityUserOut,
    AdminActivityResponse,
    AdminUserOut,
    AdminUsersResponse,
)
from parcelgis.auth.models import User, UserSession


def list_users(db: Session, *, limit: int, offset: int, search: str | None = None) -> AdminUsersResponse:
    now = datetime.utcnow()
    filters = []
    if search:
        pattern = f"%{search}%"
        filters.append(
            or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                func.coalesce(User.company_name, "").ilike(pattern),
            )
        )

    total = db.execute(select(func.count()).select_from(User).where(*filters)).scalar_one()

    active_sessions = (
        select(func.count(UserSession.id))
        .where(
            and_(
                UserSession.user_id == User.id,
                UserSession.revoked_at.is_(None),
                UserSession.expires_at > now,
            )
        )
        .correlate(User)
        .scalar_subquery()
    )
    last_activity = (
        select(func.max(UserActivityLog.created_at))
        .where(UserActivityLog.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )

    rows = db.execute(
        select(User, active_sessions.label("active_session_count"), last_activity.label("last_activity_at"))
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()

    users = [
        AdminUserOut(
            id=user.id,
            username=user.username,
            email=user.email,
            phone_number=user.phone_number,
            company_name=user.company_name,
            role=user.role,
            is_active=bool(user.is_active),
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            last_activity_at=last_activity_at,
            active_session_count=int(session_count or 0),
        )
        for user, session_count, last_activity_at in rows
    ]
    return AdminUsersResponse(total=total, count=len(users), users=users)


def list_activity(
    db: Session,
    *,
    limit: int,
    offset: int,
    user_id: int | None = None,
    event_type: str | None = None,
) -> AdminActivityResponse:
    filters = []
    if user_id is not None:
        filters.append(UserActivityLog.user_id == user_id)
    if event_type:
        filters.append(UserActivityLog.event_type == event_type)

    total = db.execute(select(func.count()).select_from(UserActivityLog).where(*filters)).scalar_one()

    rows = db.execute(
        select(UserActivityLog, User)
        .outerjoin(User, User.id == UserActivityLog.user_id)
        .where(*filters)
        .order_by(UserActivityLog.created_at.desc(), UserActivityLog.id.desc())
        .limit(limit)
        .offset(offset)
    ).all()

    events = []
    for event, user in rows:
        actor = None
        if event.user_id is not None:
            actor = ActivityUserOut(
                id=event.user_id,
                username=user.username if user else "unknown",
                email=user.email if user else "",
                company_name=(user.company_name if user else None) or "",
            )
        events.append(
            ActivityEventOut(
                id=event.id,
                created_at=event.created_at,
                event_type=event.event_type,
                metadata=event.metadata_json or {},
                user=actor,
            )
        )
    return AdminActivityResponse(total=total, count=len(events), events=events)
