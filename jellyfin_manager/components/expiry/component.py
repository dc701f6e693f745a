"""
Expiry component - disable accounts whose access period has ended.
"""

from __future__ import annotations

import logging

from jellyfin_manager.domain.entities import ActivityEntry

from .models import DisableExpiredOutput, ExpiryFailure
from .ports import ActivityLogPort, ExpirableUserRepoPort, MediaServerPort, TimePort

logger = logging.getLogger(__name__)


def run_disable_expired(
    user_repo: ExpirableUserRepoPort,
    media_server: MediaServerPort | None,
    activity: ActivityLogPort,
    time: TimePort,
) -> DisableExpiredOutput:
    """
    Disable every enabled account whose ``expires_at`` is at or before now.

    The local account is always disabled. A Jellyfin failure for one account
    is logged and reported in ``failures``; the sweep carries on with the rest.
    """
    now = time.now_utc()
    out = DisableExpiredOutput()

    for user in user_repo.list_expirable():
        if user.disabled or not user.is_expired(now):
            continue

        if user.jellyfin_user_id:
            if media_server is None:
                out.failures.append(
                    ExpiryFailure(user.username, "Jellyfin server is not connected")
                )
            else:
                try:
                    media_server.set_disabled(user.jellyfin_user_id, True)
                except Exception as e:
                    logger.warning("Could not disable Jellyfin user for %s: %s", user.username, e)
                    out.failures.append(ExpiryFailure(user.username, str(e)))

        user.disabled = True
        user.updated_at = now
        user_repo.save(user)
        activity.save(
            ActivityEntry(
                type="account_expired",
                message=f"Account {user.username} disabled after expiry",
                timestamp=now,
                username=user.username,
                user_id=user.id,
                metadata={"expires_at": user.expires_at.isoformat() if user.expires_at else None},
            )
        )
        out.disabled.append(user)

    if out.disabled:
        logger.info("Disabled %d expired account(s)", len(out.disabled))
    return out
