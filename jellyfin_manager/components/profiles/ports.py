from datetime import datetime
from typing import Protocol
from uuid import UUID

from jellyfin_manager.domain.entities import ActivityEntry, Profile
from jellyfin_manager.ports.media_server import MediaServerPort


class ProfileRepoPort(Protocol):
    def save(self, profile: Profile) -> Profile:
        """Insert or update. Saving a default profile clears the flag on all others."""
        ...

    def get_by_id(self, profile_id: UUID) -> Profile | None: ...
    def get_by_name(self, name: str) -> Profile | None: ...
    def list_all(self) -> list[Profile]: ...
    def delete(self, profile_id: UUID) -> bool: ...


class ActivityLogPort(Protocol):
    def save(self, entry: ActivityEntry) -> ActivityEntry: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...


__all__ = ["ActivityLogPort", "MediaServerPort", "ProfileRepoPort", "TimePort"]
