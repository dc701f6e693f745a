from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from jellyfin_manager.domain.entities import AppUser


@dataclass
class LoginInput:
    username: str
    password: str


@dataclass
class CreateUserInput:
    actor: AppUser
    username: str
    password: str
    email: str | None = None
    is_admin: bool = False
    profile_id: UUID | None = None
    expires_at: datetime | None = None
    notes: str | None = None


@dataclass
class UpdateUserInput:
    actor: AppUser
    target_id: str
    email: str | None = None
    notes: str | None = None
    is_admin: bool | None = None
    disabled: bool | None = None
    expires_at: datetime | None = None
    clear_expiry: bool = False


@dataclass
class DeleteUserInput:
    actor: AppUser
    target_id: str


@dataclass
class ListUsersInput:
    actor: AppUser


@dataclass
class AuthOutput:
    user: AppUser | None = None
    success: bool = False
    error: str | None = None


@dataclass
class UserOutput:
    user: AppUser | None = None
    success: bool = False
    error: str | None = None
    field: str | None = None


@dataclass
class UserListOutput:
    users: list[AppUser]
    success: bool = False
    error: str | None = None
