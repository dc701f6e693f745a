from datetime import datetime
from typing import Protocol
from uuid import UUID

from jellyfin_manager.domain.entities import ActivityEntry, AppUser, Role


class RoleRepoPort(Protocol):
    def save(self, role: Role) -> Role:
        """Insert or update. Saving a default role clears the flag on all others."""
        ...

    def get_by_id(self, role_id: UUID) -> Role | None: ...
    def get_by_name(self, name: str) -> Role | None: ...
    def get_default(self) -> Role | None: ...
    def list_all(self) -> list[Role]: ...
    def count_members(self, role_id: UUID) -> int: ...
    def delete(self, role_id: UUID) -> bool: ...


class UserRepoPort(Protocol):
    def get_by_id(self, user_id: UUID) -> AppUser | None: ...
    def save(self, user: AppUser) -> AppUser: ...


class ActivityLogPort(Protocol):
    def save(self, entry: ActivityEntry) -> ActivityEntry: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...


__all__ = ["ActivityLogPort", "RoleRepoPort", "TimePort", "UserRepoPort"]
