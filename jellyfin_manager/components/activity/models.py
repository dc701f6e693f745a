"""
Activity component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from jellyfin_manager.domain.entities import ActivityEntry, AppUser

MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class ActivityValidationError:
    code: str
    message: str
    field: str | None = None


@dataclass(frozen=True)
class LogActivityInput:
    """Input for recording an activity event."""

    type: str
    message: str
    username: str | None = None
    user_id: UUID | None = None
    invite_code: str | None = None
    created_by: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryActivityInput:
    """Filtered, paginated view of the log. Every filter is optional."""

    actor: AppUser
    type: str | None = None
    username: str | None = None
    user_id: UUID | None = None
    invite_code: str | None = None
    created_by: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    limit: int = 100
    offset: int = 0

    def filters(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "username": self.username,
            "user_id": self.user_id,
            "invite_code": self.invite_code,
            "created_by": self.created_by,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


@dataclass(frozen=True)
class UserActivityInput:
    actor: AppUser
    user_id: UUID
    limit: int = 100


@dataclass
class LogOutput:
    entry: ActivityEntry | None = None
    errors: list[ActivityValidationError] = field(default_factory=list)
    success: bool = False


@dataclass
class ActivityListOutput:
    entries: list[ActivityEntry]
    total: int = 0
    success: bool = False
    error: str | None = None
