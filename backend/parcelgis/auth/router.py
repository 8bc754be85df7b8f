from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from parcelgis.activity.deps import get_activity_logger
from parcelgis.activity.service import ActivityLogger
from parcelgis.auth.deps import get_auth_context, get_current_user
from parcelgis.auth.models import User
from parcelgis.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    SessionOut,
    TokenPairResponse,
    UserEnvelope,
    UserOut,
)
from parcelgis.auth.service import (
    AuthContext,
    login as login_user,
    register_user,
    revoke_all_sessions,
    revoke_session,
    rotate_refresh_token,
)
from parcelgis.db.session import get_db
from parcelgis.system.rate_limit import client_ip, login_limiter, rate_limit, register_limiter

router = APIRouter()


@router.post(
    "/register",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(register_limiter))],
)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    user = register_user(
        db,
        payload,
        activity=activity,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return UserEnvelope(user=UserOut.model_validate(user))


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit(login_limiter))],
)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    result = login_user(
        db,
        username=payload.username,
        password=payload.password,
        device_fingerprint=payload.device_fingerprint,
        activity=activity,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        session=SessionOut(id=result.session.id, expires_at=result.session.expires_at),
        user=UserOut.model_validate(result.user),
    )


@router.post("/refresh", response_model=TokenPairResponse)
def refresh(payload: RefreshRequest, db: Session = Depends(get_db)):
    access_token, refresh_token = rotate_refresh_token(db, payload.refresh_token)
    return TokenPairResponse(access_token=access_token, refresh_token=refresh_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    revoke_session(db, ctx.session_id)
    activity.record("logout", {"sessionId": ctx.session_id}, user_id=ctx.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/logout-all", status_code=status.HTTP_204_NO_CONTENT)
def logout_all(
    ctx: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    activity: ActivityLogger = Depends(get_activity_logger),
):
    revoked = revoke_all_sessions(db, ctx.user_id)
    activity.record("logout_all", {"revokedCount": revoked}, user_id=ctx.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserEnvelope)
def me(current_user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserOut.model_validate(current_user))
