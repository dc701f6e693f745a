"""Invite validity evaluation.

Pure functions: no storage, no clock. The caller passes the instant to
evaluate at, so the same answer is given to the public lookup page and to the
redemption that follows it.

Month arithmetic uses calendar months (``dateutil.relativedelta``). Adding a
month to the 31st lands on the last day of a shorter month. Months are
applied before days, hours and minutes.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from jellyfin_manager.domain.entities import Invite, as_utc

from .models import (
    AccountExpiryPolicy,
    Capped,
    ExpiresIn,
    ExpiryDuration,
    InvalidDurationError,
    InviteEvaluation,
    NoExpiry,
    RedemptionErrorKind,
    Unlimited,
    UsageCap,
)

_DURATION_FIELDS = (
    "user_expiry_months",
    "user_expiry_days",
    "user_expiry_hours",
    "user_expiry_minutes",
)


def usage_cap(invite: Invite) -> UsageCap:
    if invite.max_uses is None:
        return Unlimited()
    return Capped(invite.max_uses)


def _component(invite: Invite, field_name: str) -> int:
    value = getattr(invite, field_name)
    if value is None:
        return 0
    # bool is an int subclass; a float of 1.0 is still not an integer component.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidDurationError(field_name, value)
    return value


def account_expiry_policy(invite: Invite) -> AccountExpiryPolicy:
    """Raises InvalidDurationError for negative or non-integer components."""
    if not invite.user_expiry_enabled:
        return NoExpiry()

    months, days, hours, minutes = (_component(invite, f) for f in _DURATION_FIELDS)
    duration = ExpiryDuration(months=months, days=days, hours=hours, minutes=minutes)
    if duration.is_zero:
        return NoExpiry()
    return ExpiresIn(duration)


def add_duration(start: datetime, duration: ExpiryDuration) -> datetime:
    shifted = as_utc(start) + relativedelta(months=duration.months)
    return shifted + timedelta(
        days=duration.days, hours=duration.hours, minutes=duration.minutes
    )


def uses_remaining(invite: Invite) -> int | None:
    cap = usage_cap(invite)
    if isinstance(cap, Unlimited):
        return None
    return max(0, cap.limit - invite.used_count)


def evaluate(invite: Invite, now: datetime) -> InviteEvaluation:
    """
    Decide whether the invite can be redeemed at ``now``.

    Expired and exhausted invites are reported through the result, never
    raised. ``account_expiry`` is only computed for usable invites.

    Raises:
        InvalidDurationError: the invite's account expiry components are
            malformed (data integrity problem).
    """
    now = as_utc(now)
    remaining = uses_remaining(invite)

    if invite.expires_at is not None and now >= as_utc(invite.expires_at):
        return InviteEvaluation(
            usable=False,
            reason=RedemptionErrorKind.INVITE_EXPIRED,
            account_expiry=None,
            uses_remaining=remaining,
        )

    cap = usage_cap(invite)
    if isinstance(cap, Capped) and invite.used_count >= cap.limit:
        return InviteEvaluation(
            usable=False,
            reason=RedemptionErrorKind.INVITE_EXHAUSTED,
            account_expiry=None,
            uses_remaining=remaining,
        )

    policy = account_expiry_policy(invite)
    account_expiry = None
    if isinstance(policy, ExpiresIn):
        account_expiry = add_duration(now, policy.duration)

    return InviteEvaluation(
        usable=True,
        reason=None,
        account_expiry=account_expiry,
        uses_remaining=remaining,
    )
