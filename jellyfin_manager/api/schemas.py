from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from jellyfin_manager.domain.entities import DurationComponent, Invite

InviteStatus = Literal["active", "expired", "exhausted", "invalid"]


# --- Users ---
class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str | None = None
    is_admin: bool = False
    jellyfin_user_id: str | None = None
    profile_id: UUID | None = None
    invite_code: str | None = None
    role_id: UUID | None = None
    notes: str | None = None
    expires_at: datetime | None = None
    disabled: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserCreateRequest(BaseModel):
    username: str
    password: str
    email: str | None = None
    is_admin: bool = False
    profile_id: UUID | None = None
    expires_at: datetime | None = None
    notes: str | None = None


class UserUpdateRequest(BaseModel):
    email: str | None = None
    notes: str | None = None
    is_admin: bool | None = None
    disabled: bool | None = None
    expires_at: datetime | None = None
    clear_expiry: bool = False


class ExpiryFailureResponse(BaseModel):
    username: str
    message: str


class ExpireUsersResponse(BaseModel):
    disabled: list[UserResponse]
    failures: list[ExpiryFailureResponse] = []


# --- Invites ---
class InviteCreateRequest(BaseModel):
    label: str | None = None
    user_label: str | None = None
    profile_id: UUID | None = None
    max_uses: int | None = None
    expires_at: datetime | None = None
    user_expiry_enabled: bool = False
    user_expiry_months: int = 0
    user_expiry_days: int = 0
    user_expiry_hours: int = 0
    user_expiry_minutes: int = 0


class InviteResponse(BaseModel):
    id: UUID
    code: str
    label: str | None = None
    user_label: str | None = None
    profile_id: UUID | None = None
    max_uses: int | None = None
    used_count: int
    uses_remaining: int | None = None
    expires_at: datetime | None = None
    user_expiry_enabled: bool
    user_expiry_months: DurationComponent
    user_expiry_days: DurationComponent
    user_expiry_hours: DurationComponent
    user_expiry_minutes: DurationComponent
    status: InviteStatus
    created_at: datetime
    created_by: str | None = None

    @classmethod
    def build(
        cls, invite: Invite, status: str, uses_remaining: int | None
    ) -> "InviteResponse":
        return cls(
            **invite.model_dump(),
            uses_remaining=uses_remaining,
            status=status,
        )


class InviteLookupResponse(BaseModel):
    """What an invitee sees before redeeming."""

    code: str
    label: str | None = None
    user_label: str | None = None
    status: InviteStatus
    usable: bool
    expires_at: datetime | None = None
    max_uses: int | None = None
    used_count: int
    uses_remaining: int | None = None
    user_expiry_enabled: bool = False
    user_expiry_months: DurationComponent = 0
    user_expiry_days: DurationComponent = 0
    user_expiry_hours: DurationComponent = 0
    user_expiry_minutes: DurationComponent = 0
    account_expires_at: datetime | None = None


class UseInviteRequest(BaseModel):
    username: str
    password: str
    email: str | None = None


class RedeemRequest(UseInviteRequest):
    code: str


class RedeemResponse(BaseModel):
    """Summary of the account created by a redemption."""

    id: UUID
    username: str
    email: str | None = None
    profile_id: UUID | None = None
    expires_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class RedemptionErrorResponse(BaseModel):
    message: str
    kind: str
    field: str | None = None


# --- Profiles ---
class ProfileCreateRequest(BaseModel):
    name: str
    source_user_id: str | None = None
    library_access: list[str] | None = None
    is_default: bool = False


class ProfileUpdateRequest(BaseModel):
    name: str | None = None
    source_user_id: str | None = None
    library_access: list[str] | None = None
    is_default: bool | None = None


class ProfileResponse(BaseModel):
    id: UUID
    name: str
    source_user_id: str | None = None
    source_name: str | None = None
    is_default: bool = False
    library_access: list[str] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# --- Roles ---
class RoleCreateRequest(BaseModel):
    name: str
    description: str | None = None
    is_default: bool = False
    is_admin: bool = False
    permissions: dict[str, Any] = Field(default_factory=dict)


class RoleUpdateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    is_default: bool | None = None
    is_admin: bool | None = None
    permissions: dict[str, Any] | None = None


class RoleResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    is_default: bool = False
    is_admin: bool = False
    permissions: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RoleAssignRequest(BaseModel):
    """Role to assign; null clears the account's role."""

    role_id: UUID | None = None


class UserRoleResponse(BaseModel):
    user_id: UUID
    role: RoleResponse | None = None


# --- Activity ---
class ActivityResponse(BaseModel):
    id: UUID
    type: str
    message: str
    timestamp: datetime
    username: str | None = None
    user_id: UUID | None = None
    invite_code: str | None = None
    created_by: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class ActivityListResponse(BaseModel):
    items: list[ActivityResponse]
    total: int
    limit: int
    offset: int


# --- Jellyfin ---
class JellyfinConnectRequest(BaseModel):
    url: str
    username: str
    password: str


class JellyfinStatusResponse(BaseModel):
    connected: bool
    source: Literal["stored", "environment"] | None = None
    url: str | None = None
    server_username: str | None = None
    connected_at: datetime | None = None


class LibraryResponse(BaseModel):
    id: str
    name: str
    collection_type: str | None = None


class JellyfinUserResponse(BaseModel):
    id: str
    name: str
    is_administrator: bool = False
    is_disabled: bool = False


class MediaActivityEntry(BaseModel):
    id: str
    name: str
    type: str
    date: str
    severity: str | None = None
    item_id: str | None = None
    short_overview: str | None = None


class MediaActivityResponse(BaseModel):
    items: list[MediaActivityEntry]
    total: int


class WatchTimeResponse(BaseModel):
    user_id: str
    total_minutes: int
    items_played: int


class FavoriteItem(BaseModel):
    id: str
    name: str
    type: str
    production_year: int | None = None
    series_name: str | None = None


class FavoritesResponse(BaseModel):
    items: list[FavoriteItem]
    total: int
