"""Invite component data models.

Inputs, outputs, error records and the value types used by the validity
evaluator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from jellyfin_manager.domain.entities import AppUser, Invite


class RedemptionErrorKind(str, Enum):
    """Why an invite could not be redeemed."""

    INVITE_NOT_FOUND = "InviteNotFound"
    INVITE_EXPIRED = "InviteExpired"
    INVITE_EXHAUSTED = "InviteExhausted"
    INVALID_DURATION = "InvalidDuration"
    INVALID_ACCOUNT_INPUT = "InvalidAccountInput"
    CONCURRENCY_CONFLICT = "ConcurrencyConflict"
    PROVISIONING_FAILED = "ProvisioningFailed"


# --- Usage cap: Unlimited | Capped(n) ---


@dataclass(frozen=True)
class Unlimited:
    pass


@dataclass(frozen=True)
class Capped:
    limit: int


UsageCap = Unlimited | Capped


# --- Account expiry policy: NoExpiry | ExpiresIn(duration) ---


@dataclass(frozen=True)
class ExpiryDuration:
    months: int = 0
    days: int = 0
    hours: int = 0
    minutes: int = 0

    @property
    def is_zero(self) -> bool:
        return not (self.months or self.days or self.hours or self.minutes)


@dataclass(frozen=True)
class NoExpiry:
    pass


@dataclass(frozen=True)
class ExpiresIn:
    duration: ExpiryDuration


AccountExpiryPolicy = NoExpiry | ExpiresIn


class InvalidDurationError(ValueError):
    """An invite carries an expiry component that is not a non-negative integer."""

    def __init__(self, field_name: str, value: object):
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid duration component {field_name}={value!r}")


@dataclass(frozen=True)
class InviteEvaluation:
    """Redeemability of one invite at one instant."""

    usable: bool
    reason: RedemptionErrorKind | None
    account_expiry: datetime | None
    uses_remaining: int | None

    @property
    def status(self) -> str:
        if self.reason == RedemptionErrorKind.INVITE_EXPIRED:
            return "expired"
        if self.reason == RedemptionErrorKind.INVITE_EXHAUSTED:
            return "exhausted"
        if self.reason == RedemptionErrorKind.INVALID_DURATION:
            return "invalid"
        return "active"


# --- Inputs ---


@dataclass
class CreateInviteInput:
    creator: AppUser
    label: str | None = None
    user_label: str | None = None
    profile_id: UUID | None = None
    max_uses: int | None = None
    expires_at: datetime | None = None
    user_expiry_enabled: bool = False
    user_expiry_months: int = 0
    user_expiry_days: int = 0
    user_expiry_hours: int = 0
    user_expiry_minutes: int = 0


@dataclass
class ListInvitesInput:
    actor: AppUser


@dataclass
class DeleteInviteInput:
    actor: AppUser
    invite_id: UUID


@dataclass
class LookupInviteInput:
    code: str


@dataclass
class RedeemInviteInput:
    code: str
    username: str
    password: str
    email: str | None = None


# --- Errors ---


@dataclass(frozen=True)
class InviteValidationError:
    """Validation error details for invite administration."""

    code: str
    message: str
    field: str | None = None


@dataclass(frozen=True)
class RedemptionError:
    kind: RedemptionErrorKind
    message: str
    field: str | None = None


# --- Outputs ---


@dataclass
class InviteOutput:
    invite: Invite | None = None
    success: bool = False
    error: str | None = None
    errors: list[InviteValidationError] = field(default_factory=list)


@dataclass
class InviteWithStatus:
    invite: Invite
    evaluation: InviteEvaluation


@dataclass
class InviteListOutput:
    invites: list[InviteWithStatus]
    success: bool = False
    error: str | None = None


@dataclass
class LookupOutput:
    invite: Invite | None = None
    evaluation: InviteEvaluation | None = None
    success: bool = False
    error: RedemptionError | None = None


@dataclass
class RedeemOutput:
    user: AppUser | None = None
    success: bool = False
    error: RedemptionError | None = None
