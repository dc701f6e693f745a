from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from jellyfin_manager.domain.entities import AppUser, Profile


@dataclass(frozen=True)
class ProfileValidationError:
    code: str
    message: str
    field: str | None = None


@dataclass
class CreateProfileInput:
    actor: AppUser
    name: str
    source_user_id: str | None = None
    library_access: list[str] | None = None
    is_default: bool = False


@dataclass
class UpdateProfileInput:
    actor: AppUser
    profile_id: UUID
    name: str | None = None
    source_user_id: str | None = None
    library_access: list[str] | None = None
    is_default: bool | None = None


@dataclass
class DeleteProfileInput:
    actor: AppUser
    profile_id: UUID


@dataclass
class GetProfileInput:
    actor: AppUser
    profile_id: UUID


@dataclass
class ListProfilesInput:
    actor: AppUser


@dataclass
class ProfileOutput:
    profile: Profile | None = None
    success: bool = False
    error: str | None = None
    errors: list[ProfileValidationError] = field(default_factory=list)


@dataclass
class ProfileListOutput:
    profiles: list[Profile]
    success: bool = False
    error: str | None = None
