"""Session protocol: register, login, refresh rotation, logout, verification.

Every session row moves ACTIVE -> (refreshed)* -> REVOKED. A user has at most
one ACTIVE row at a time; the partial unique index
``ux_user_sessions_one_active_per_user`` guarantees it even when two logins
race, and ``login`` takes a row lock on the user so they serialize.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parcelgis.activity.service import ActivityLogger
from parcelgis.auth.models import User, UserSession, UserTermsAcceptance
from parcelgis.auth.schemas import RegisterRequest
from parcelgis.auth.security import (
    JWTError,
    create_access_token,
    decode_access_token,
    generate_refresh_token,
    hash_password,
    hash_token,
    refresh_expiry,
    verify_password,
)
from parcelgis.core.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

TERMS_VERSION = "v1"
LOGIN_ATTEMPTS = 2

REASON_REPLACED = "replaced_by_new_login"
REASON_LOGOUT = "logout"
REASON_LOGOUT_ALL = "logout_all"


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    session_id: str
    username: str


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    session: UserSession
    user: User


def _find_user_by_username(db: Session, username: str) -> User | None:
    return db.execute(
        select(User).where(func.lower(User.username) == username.strip().lower()).limit(1)
    ).scalar_one_or_none()


def register_user(
    db: Session,
    payload: RegisterRequest,
    *,
    activity: ActivityLogger,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> User:
    email = str(payload.email).strip().lower()
    existing = db.execute(
        select(User.id)
        .where(or_(func.lower(User.username) == payload.username.lower(), User.email == email))
        .limit(1)
    ).first()
    if existing:
        raise Conflict("Username or email already exists")

    try:
        pw_hash = hash_password(payload.password)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    user = User(
        username=payload.username,
        email=email,
        password_hash=pw_hash,
        phone_number=payload.phone_number,
        company_name=payload.company_name,
        user_role="user",
        is_active=True,
    )
    try:
        db.add(user)
        db.flush()
        db.add(
            UserTermsAcceptance(
                user_id=user.id,
                terms_version=TERMS_VERSION,
                accepted_ip=ip_address,
                accepted_user_agent=user_agent,
            )
        )
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent registration of the same name.
        db.rollback()
        raise Conflict("Username or email already exists") from exc
    db.refresh(user)

    activity.record("user_registered", {"username": user.username}, user_id=user.id)
    return user


def _open_session(
    db: Session,
    user: User,
    *,
    device_fingerprint: str | None,
    ip_address: str | None,
    user_agent: str | None,
) -> tuple[UserSession, str]:
    """Revoke the user's live session and insert a new one, in one transaction."""
    now = datetime.utcnow()

    # Serializes concurrent logins of the same user.
    db.execute(select(User.id).where(User.id == user.id).with_for_update())

    db.execute(
        update(UserSession)
        .where(UserSession.user_id == user.id, UserSession.revoked_at.is_(None))
        .values(revoked_at=now, revoked_reason=REASON_REPLACED)
        .execution_options(synchronize_session=False)
    )
    db.flush()

    raw_refresh = generate_refresh_token()
    session_row = UserSession(
        id=str(uuid.uuid4()),
        user_id=user.id,
        refresh_token_hash=hash_token(raw_refresh),
        issued_at=now,
        last_seen_at=now,
        expires_at=refresh_expiry(now),
        ip_address=ip_address,
        user_agent=user_agent,
        device_fingerprint=device_fingerprint,
    )
    db.add(session_row)
    user.last_login_at = now
    user.last_failed_login_at = None
    db.commit()
    db.refresh(session_row)
    return session_row, raw_refresh


def login(
    db: Session,
    *,
    username: str,
    password: str,
    activity: ActivityLogger,
    device_fingerprint: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> LoginResult:
    user = _find_user_by_username(db, username)
    if not user:
        activity.record("login_failed", {"username": username, "reason": "user_not_found"})
        logger.info("Login failed: unknown user")
        raise Unauthorized("Invalid credentials", code="invalid_credentials")

    try:
        password_ok = verify_password(password, user.password_hash)
    except ValueError:
        password_ok = False

    if not password_ok:
        user.last_failed_login_at = datetime.utcnow()
        db.commit()
        activity.record("login_failed", {"username": username, "reason": "bad_password"}, user_id=user.id)
        logger.info("Login failed: bad password user_id=%s", user.id)
        raise Unauthorized("Invalid credentials", code="invalid_credentials")

    if not user.is_active:
        activity.record("login_failed", {"username": username, "reason": "inactive_user"}, user_id=user.id)
        raise Forbidden("Account is inactive", code="account_inactive")

    user_id = user.id
    for attempt in range(1, LOGIN_ATTEMPTS + 1):
        try:
            session_row, raw_refresh = _open_session(
                db,
                user,
                device_fingerprint=device_fingerprint,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            break
        except IntegrityError:
            # A concurrent login inserted its session between our revoke and
            # insert; revoke again and retry.
            db.rollback()
            if attempt == LOGIN_ATTEMPTS:
                raise
            logger.info("Concurrent login detected for user_id=%s, retrying", user_id)

    access_token = create_access_token(
        user_id=user.id,
        session_id=session_row.id,
        username=user.username,
    )
    activity.record(
        "login_success",
        {"username": user.username, "sessionId": session_row.id},
        user_id=user.id,
    )
    return LoginResult(
        access_token=access_token,
        refresh_token=raw_refresh,
        session=session_row,
        user=user,
    )


def rotate_refresh_token(db: Session, refresh_token: str) -> tuple[str, str]:
    """Exchange a refresh token for a new access token and a new refresh token.

    The presented token is single-use: its hash is overwritten, so replaying
    it after a successful rotation finds no session.
    """
    now = datetime.utcnow()
    row = db.execute(
        select(UserSession, User.username)
        .join(User, User.id == UserSession.user_id)
        .where(
            UserSession.refresh_token_hash == hash_token(refresh_token),
            UserSession.revoked_at.is_(None),
            UserSession.expires_at > now,
            User.is_active.is_(True),
        )
        .with_for_update(of=UserSession)
    ).first()

    if row is None:
        db.rollback()
        raise Unauthorized("Refresh token is invalid or expired", code="invalid_refresh_token")

    session_row, username = row
    new_refresh = generate_refresh_token()
    session_row.refresh_token_hash = hash_token(new_refresh)
    session_row.last_seen_at = now
    db.commit()

    access_token = create_access_token(
        user_id=session_row.user_id,
        session_id=session_row.id,
        username=username,
    )
    return access_token, new_refresh


def revoke_session(db: Session, session_id: str, reason: str = REASON_LOGOUT) -> bool:
    result = db.execute(
        update(UserSession)
        .where(UserSession.id == session_id, UserSession.revoked_at.is_(None))
        .values(revoked_at=datetime.utcnow(), revoked_reason=reason)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return bool(result.rowcount)


def revoke_all_sessions(db: Session, user_id: int, reason: str = REASON_LOGOUT_ALL) -> int:
    result = db.execute(
        update(UserSession)
        .where(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
        .values(revoked_at=datetime.utcnow(), revoked_reason=reason)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return int(result.rowcount or 0)


def verify_access_token(db: Session, token: str) -> AuthContext:
    """Check signature/expiry, then require a live session for the claims.

    A revoked session fails here even while the token itself is unexpired.
    """
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise Unauthorized("Invalid or expired token", code="invalid_token")

    sub = payload.get("sub")
    session_id = payload.get("sid")
    if payload.get("typ") != "access" or not isinstance(sub, str) or not sub.isdigit():
        raise Unauthorized("Invalid token payload", code="malformed_token")
    if not isinstance(session_id, str) or not session_id:
        raise Unauthorized("Invalid token payload", code="malformed_token")

    user_id = int(sub)
    row = db.execute(
        select(UserSession.id, User.username)
        .join(User, User.id == UserSession.user_id)
        .where(
            UserSession.id == session_id,
            UserSession.user_id == user_id,
            UserSession.revoked_at.is_(None),
            UserSession.expires_at > datetime.utcnow(),
            User.is_active.is_(True),
        )
        .limit(1)
    ).first()
    if row is None:
        raise Unauthorized("Session is no longer active", code="session_inactive")

    return AuthContext(user_id=user_id, session_id=session_id, username=row.username)


def touch_session(session_factory, session_id: str) -> None:
    db = session_factory()
    try:
        db.execute(
            update(UserSession)
            .where(UserSession.id == session_id)
            .values(last_seen_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Failed to bump last_seen_at for session %s", session_id, exc_info=True)
    finally:
        db.close()


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user
