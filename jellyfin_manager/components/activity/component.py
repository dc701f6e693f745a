"""
Activity component - activity log recording and querying.

Entries are written once and never updated. Queries are admin only.
"""

from __future__ import annotations

import logging
from typing import get_args

from jellyfin_manager.domain.entities import ActivityEntry, ActivityType
from jellyfin_manager.domain.policy import PolicyEngine

from .models import (
    MAX_PAGE_SIZE,
    ActivityListOutput,
    ActivityValidationError,
    LogActivityInput,
    LogOutput,
    QueryActivityInput,
    UserActivityInput,
)
from .ports import ActivityRepoPort, TimePort

logger = logging.getLogger(__name__)

ACTIVITY_TYPES: frozenset[str] = frozenset(get_args(ActivityType))


def run_log(inp: LogActivityInput, *, repo: ActivityRepoPort, time: TimePort) -> LogOutput:
    """Record one activity event, stamped with the current time."""
    errors: list[ActivityValidationError] = []
    if inp.type not in ACTIVITY_TYPES:
        errors.append(
            ActivityValidationError(
                code="invalid_type", message=f"Unknown activity type: {inp.type}", field="type"
            )
        )
    if not inp.message.strip():
        errors.append(
            ActivityValidationError(
                code="message_required", message="Message is required", field="message"
            )
        )
    if errors:
        return LogOutput(errors=errors, success=False)

    entry = ActivityEntry(
        type=inp.type,  # type: ignore[arg-type]
        message=inp.message,
        timestamp=time.now_utc(),
        username=inp.username,
        user_id=inp.user_id,
        invite_code=inp.invite_code,
        created_by=inp.created_by,
        metadata=dict(inp.metadata),
    )
    repo.save(entry)
    logger.debug("Activity %s: %s", entry.type, entry.message)
    return LogOutput(entry=entry, success=True)


def _page_bounds(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


def run_query(
    inp: QueryActivityInput, *, repo: ActivityRepoPort, policy: PolicyEngine
) -> ActivityListOutput:
    if not policy.can_view_activity(inp.actor):
        return ActivityListOutput(entries=[], success=False, error="Access denied")

    if inp.type is not None and inp.type not in ACTIVITY_TYPES:
        return ActivityListOutput(
            entries=[], success=False, error=f"Unknown activity type: {inp.type}"
        )

    if inp.start_time and inp.end_time and inp.start_time > inp.end_time:
        return ActivityListOutput(
            entries=[], success=False, error="start_time must be before end_time"
        )

    limit, offset = _page_bounds(inp.limit, inp.offset)
    entries, total = repo.query(inp.filters(), limit=limit, offset=offset)
    return ActivityListOutput(entries=entries, total=total, success=True)


def run_user_activity(
    inp: UserActivityInput, *, repo: ActivityRepoPort, policy: PolicyEngine
) -> ActivityListOutput:
    """Entries that concern a single account, newest first."""
    if not policy.can_view_activity(inp.actor):
        return ActivityListOutput(entries=[], success=False, error="Access denied")

    limit, _ = _page_bounds(inp.limit, 0)
    entries, total = repo.query({"user_id": inp.user_id}, limit=limit, offset=0)
    return ActivityListOutput(entries=entries, total=total, success=True)


def run(
    inp: LogActivityInput | QueryActivityInput | UserActivityInput,
    *,
    repo: ActivityRepoPort,
    policy: PolicyEngine | None = None,
    time: TimePort | None = None,
) -> LogOutput | ActivityListOutput:
    if isinstance(inp, LogActivityInput):
        assert time
        return run_log(inp, repo=repo, time=time)

    elif isinstance(inp, QueryActivityInput):
        assert policy
        return run_query(inp, repo=repo, policy=policy)

    elif isinstance(inp, UserActivityInput):
        assert policy
        return run_user_activity(inp, repo=repo, policy=policy)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
