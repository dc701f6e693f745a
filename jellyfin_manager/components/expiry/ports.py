from datetime import datetime
from typing import Protocol

from jellyfin_manager.domain.entities import ActivityEntry, AppUser
from jellyfin_manager.ports.media_server import MediaServerPort


class ExpirableUserRepoPort(Protocol):
    def list_expirable(self) -> list[AppUser]:
        """Enabled accounts that carry an expiry timestamp."""
        ...

    def save(self, user: AppUser) -> AppUser: ...


class ActivityLogPort(Protocol):
    def save(self, entry: ActivityEntry) -> ActivityEntry: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...


__all__ = ["ActivityLogPort", "ExpirableUserRepoPort", "MediaServerPort", "TimePort"]
