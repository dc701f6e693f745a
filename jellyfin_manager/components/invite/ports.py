from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol
from uuid import UUID

from jellyfin_manager.domain.entities import ActivityEntry, AppUser, Invite, Profile
from jellyfin_manager.ports.media_server import MediaServerPort


class ConcurrencyConflictError(Exception):
    """The storage layer could not serialize this redemption against another one."""


class DuplicateAccountError(Exception):
    """The account collides with an existing one (username or media server id)."""


class InviteRepoPort(Protocol):
    def create(self, invite: Invite) -> Invite: ...
    def get_by_id(self, invite_id: UUID) -> Invite | None: ...
    def get_by_code(self, code: str) -> Invite | None: ...
    def list_all(self) -> list[Invite]: ...
    def delete(self, invite_id: UUID) -> bool: ...


class ProfileLookupPort(Protocol):
    def get_by_id(self, profile_id: UUID) -> Profile | None: ...
    def get_default(self) -> Profile | None: ...


class ActivityLogPort(Protocol):
    def save(self, entry: ActivityEntry) -> ActivityEntry: ...


class RedemptionUnitPort(Protocol):
    """Storage operations available inside one atomic redemption."""

    def get_invite_by_code(self, code: str) -> Invite | None: ...

    def consume_use(self, code: str, expected_used_count: int) -> bool:
        """Increment used_count if it still equals expected_used_count and the cap allows."""
        ...

    def username_exists(self, username: str) -> bool: ...

    def get_profile(self, profile_id: UUID) -> Profile | None: ...

    def create_account(self, user: AppUser) -> AppUser: ...

    def apply_profile(self, user_id: UUID, profile: Profile) -> None: ...

    def record_activity(self, entry: ActivityEntry) -> None: ...


class RedemptionStorePort(Protocol):
    def transaction(self) -> AbstractContextManager[RedemptionUnitPort]:
        """
        Open an atomic unit of work.

        Leaving the block normally commits; leaving it with an exception rolls
        back every change made through the unit. Raises
        ConcurrencyConflictError if the unit cannot be started or committed
        because of a competing writer.
        """
        ...


class AuthAdapterPort(Protocol):
    def hash_password(self, plain: str) -> str: ...


class TimePort(Protocol):
    """Port for time operations - enables deterministic testing."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


__all__ = [
    "ActivityLogPort",
    "AuthAdapterPort",
    "ConcurrencyConflictError",
    "DuplicateAccountError",
    "InviteRepoPort",
    "MediaServerPort",
    "ProfileLookupPort",
    "RedemptionStorePort",
    "RedemptionUnitPort",
    "TimePort",
]
