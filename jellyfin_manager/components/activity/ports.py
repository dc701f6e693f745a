"""
Activity component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from jellyfin_manager.domain.entities import ActivityEntry


class ActivityRepoPort(Protocol):
    """Append-only activity storage."""

    def save(self, entry: ActivityEntry) -> ActivityEntry: ...

    def query(
        self, filters: dict[str, Any], limit: int = 100, offset: int = 0
    ) -> tuple[list[ActivityEntry], int]:
        """Return one page of matching entries (newest first) and the total count."""
        ...


class TimePort(Protocol):
    """Time provider interface."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
