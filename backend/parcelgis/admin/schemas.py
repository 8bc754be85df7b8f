from datetime import datetime
from typing import Any

from parcelgis.core.schemas import CamelModel


class AdminUserOut(CamelModel):
    id: int
    username: str
    email: str
    phone_number: str
    company_name: str
    role: str
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None
    last_activity_at: datetime | None = None
    active_session_count: int = 0


class AdminUsersResponse(CamelModel):
    total: int
    count: int
    users: list[AdminUserOut]


class ActivityUserOut(CamelModel):
    id: int
    username: str
    email: str
    company_name: str


class ActivityEventOut(CamelModel):
    id: int
    created_at: datetime
    event_type: str
    metadata: dict[str, Any]
    user: ActivityUserOut | None = None


class AdminActivityResponse(CamelModel):
    total: int
    count: int
    events: list[ActivityEventOut]
