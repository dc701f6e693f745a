from datetime import UTC, datetime
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


# --- Enums / Literals ---
RoleType = Literal["admin", "user"]
ActivityType = Literal[
    "account_created",
    "account_disabled",
    "account_enabled",
    "account_deleted",
    "account_expired",
    "invite_created",
    "invite_used",
    "invite_deleted",
    "profile_created",
    "profile_deleted",
    "role_created",
    "role_deleted",
    "role_assigned",
]


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(dt: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


# --- Accounts ---

class AppUser(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    username: str
    password_hash: str
    email: str | None = None
    is_admin: bool = False
    jellyfin_user_id: str | None = None
    profile_id: UUID | None = None
    role_id: UUID | None = None
    invite_code: str | None = None
    notes: str | None = None
    expires_at: datetime | None = None
    disabled: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def roles(self) -> list[RoleType]:
        return ["admin"] if self.is_admin else ["user"]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) <= as_utc(now)


# --- Invites ---

# Expiry components are kept as stored; the evaluator rejects anything that is
# not a non-negative integer.
DurationComponent = int | float | str


class Invite(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    code: str
    label: str | None = None
    user_label: str | None = None
    profile_id: UUID | None = None
    max_uses: int | None = None
    used_count: int = 0
    expires_at: datetime | None = None
    user_expiry_enabled: bool = False
    user_expiry_months: DurationComponent = 0
    user_expiry_days: DurationComponent = 0
    user_expiry_hours: DurationComponent = 0
    user_expiry_minutes: DurationComponent = 0
    created_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None


# --- Profiles ---

class Profile(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    source_user_id: str | None = None
    source_name: str | None = None
    is_default: bool = False
    library_access: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# --- Roles ---

class Role(BaseModel):
    """A named account role. The default role stands in for accounts without one."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    description: str | None = None
    is_default: bool = False
    is_admin: bool = False
    permissions: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# --- Activity ---

class ActivityEntry(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    type: ActivityType
    message: str
    timestamp: datetime = Field(default_factory=utc_now)
    username: str | None = None
    user_id: UUID | None = None
    invite_code: str | None = None
    created_by: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Media server connection ---

class JellyfinConnection(BaseModel):
    url: str
    access_token: str
    server_user_id: str | None = None
    server_username: str | None = None
    connected_at: datetime = Field(default_factory=utc_now)
