from datetime import datetime
from typing import Annotated, Literal

from pydantic import EmailStr, Field, StringConstraints

from parcelgis.core.schemas import CamelModel


Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50)]


class RegisterRequest(CamelModel):
    username: Username
    email: EmailStr
    # bcrypt only looks at 72 bytes; longer inputs are rejected by hash_password
    password: str = Field(min_length=10, max_length=128)
    phone_number: Annotated[str, StringConstraints(strip_whitespace=True, min_length=7, max_length=50)]
    company_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]
    disclaimer_accepted: Literal[True]


class LoginRequest(CamelModel):
    username: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    password: str = Field(min_length=1, max_length=128)
    device_fingerprint: Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)] | None = None


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=20, max_length=512)


class UserOut(CamelModel):
    id: int
    username: str
    email: str
    phone_number: str
    company_name: str
    role: str
    created_at: datetime | None = None
    last_login_at: datetime | None = None


class UserEnvelope(CamelModel):
    user: UserOut


class SessionOut(CamelModel):
    id: str
    expires_at: datetime


class LoginResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    session: SessionOut
    user: UserOut


class TokenPairResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
