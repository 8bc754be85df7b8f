from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from parcelgis.auth.models import User
from parcelgis.auth.service import AuthContext, get_user, touch_session, verify_access_token
from parcelgis.core.errors import Forbidden, Unauthorized
from parcelgis.db.session import get_db, get_session_factory

bearer = HTTPBearer(auto_error=False)


def get_auth_context(
    background_tasks: BackgroundTasks,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
) -> AuthContext:
    if not creds or not creds.credentials:
        raise Unauthorized("Missing bearer token", code="missing_token")

    ctx = verify_access_token(db, creds.credentials)
    background_tasks.add_task(touch_session, session_factory, ctx.session_id)
    return ctx


def get_current_user(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
) -> User:
    return get_user(db, ctx.user_id)


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise Forbidden("Admin access required")
    return user
