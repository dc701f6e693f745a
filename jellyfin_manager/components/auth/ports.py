from datetime import datetime
from typing import Protocol
from uuid import UUID

from jellyfin_manager.domain.entities import ActivityEntry, AppUser, Profile
from jellyfin_manager.ports.media_server import MediaServerPort


class UserRepoPort(Protocol):
    def get_by_username(self, username: str) -> AppUser | None: ...
    def get_by_id(self, user_id: UUID) -> AppUser | None: ...
    def save(self, user: AppUser) -> AppUser: ...
    def list_all(self) -> list[AppUser]: ...
    def delete(self, user_id: UUID) -> None: ...


class ProfileLookupPort(Protocol):
    def get_by_id(self, profile_id: UUID) -> Profile | None: ...


class ActivityLogPort(Protocol):
    def save(self, entry: ActivityEntry) -> ActivityEntry: ...


class AuthAdapterPort(Protocol):
    def verify_password(self, plain: str, hashed: str) -> bool: ...
    def hash_password(self, plain: str) -> str: ...


class TimePort(Protocol):
    """Port for time operations - enables deterministic testing."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


__all__ = [
    "ActivityLogPort",
    "AuthAdapterPort",
    "MediaServerPort",
    "ProfileLookupPort",
    "TimePort",
    "UserRepoPort",
]
