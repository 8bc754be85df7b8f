import secrets
from hashlib import sha256
from datetime import datetime, timedelta
from typing import Any, Dict

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from parcelgis.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

ENV = settings.ENV
JWT_SECRET = settings.JWT_ACCESS_SECRET
if not JWT_SECRET and ENV not in ("dev", "test"):
    raise RuntimeError("JWT_ACCESS_SECRET is not set")
if JWT_SECRET and ENV not in ("dev", "test") and len(JWT_SECRET) < 32:
    raise RuntimeError("JWT_ACCESS_SECRET must be at least 32 characters")
if not JWT_SECRET:
    JWT_SECRET = "dev-change-me-dev-change-me-dev-change-me"
JWT_ALG = "HS256"
ACCESS_TTL_MINUTES = settings.JWT_ACCESS_TTL_MINUTES
REFRESH_TTL_DAYS = settings.REFRESH_TOKEN_TTL_DAYS

REFRESH_TOKEN_BYTES = 48


def _ensure_bcrypt_limit(password: str) -> None:
    # bcrypt limit is 72 BYTES, not characters
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Password too long (max 72 bytes).")


def hash_password(password: str) -> str:
    _ensure_bcrypt_limit(password)
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    _ensure_bcrypt_limit(password)
    return pwd_context.verify(password, password_hash)


def create_access_token(*, user_id: int, session_id: str, username: str, now: datetime | None = None) -> str:
    issued_at = now or datetime.utcnow()
    to_encode: Dict[str, Any] = {
        "sub": str(user_id),
        "sid": session_id,
        "username": username,
        "typ": "access",
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=ACCESS_TTL_MINUTES),
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])


def generate_refresh_token() -> str:
    # Opaque random secret; only its hash ever reaches the database.
    return secrets.token_urlsafe(REFRESH_TOKEN_BYTES)


def refresh_expiry(now: datetime | None = None) -> datetime:
    return (now or datetime.utcnow()) + timedelta(days=REFRESH_TTL_DAYS)


def hash_token(token: str) -> str:
    return sha256(token.encode("utf-8")).hexdigest()


__all__ = [
    "ExpiredSignatureError",
    "JWTError",
    "create_access_token",
    "decode_access_token",
    "generate_refresh_token",
    "hash_password",
    "hash_token",
    "refresh_expiry",
    "verify_password",
]
