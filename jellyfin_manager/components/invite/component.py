from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Sequence
from uuid import uuid4

from jellyfin_manager.domain.accounts import AccountValidator
from jellyfin_manager.domain.entities import ActivityEntry, AppUser, Invite, as_utc
from jellyfin_manager.domain.policy import PolicyEngine
from jellyfin_manager.rules.models import InviteRules

from ._validity import evaluate, uses_remaining
from .models import (
    CreateInviteInput,
    DeleteInviteInput,
    InvalidDurationError,
    InviteEvaluation,
    InviteListOutput,
    InviteOutput,
    InviteValidationError,
    InviteWithStatus,
    ListInvitesInput,
    LookupInviteInput,
    LookupOutput,
    RedeemInviteInput,
    RedeemOutput,
    RedemptionError,
    RedemptionErrorKind,
)
from .ports import (
    ActivityLogPort,
    AuthAdapterPort,
    ConcurrencyConflictError,
    DuplicateAccountError,
    InviteRepoPort,
    MediaServerPort,
    ProfileLookupPort,
    RedemptionStorePort,
    TimePort,
)

logger = logging.getLogger(__name__)

MESSAGES = {
    RedemptionErrorKind.INVITE_NOT_FOUND: "Invite not found",
    RedemptionErrorKind.INVITE_EXPIRED: "This invite has expired",
    RedemptionErrorKind.INVITE_EXHAUSTED: "This invite has reached its maximum uses",
    RedemptionErrorKind.INVALID_DURATION: "This invite cannot be used right now",
    RedemptionErrorKind.INVALID_ACCOUNT_INPUT: "Invalid account details",
    RedemptionErrorKind.CONCURRENCY_CONFLICT: "The invite is busy, please try again",
    RedemptionErrorKind.PROVISIONING_FAILED: "Your account could not be created",
}


def _error(
    kind: RedemptionErrorKind, message: str | None = None, field: str | None = None
) -> RedemptionError:
    return RedemptionError(kind=kind, message=message or MESSAGES[kind], field=field)


def _mask(code: str) -> str:
    return f"{code[:6]}..." if len(code) > 6 else code


def generate_code(num_bytes: int = 16) -> str:
    return secrets.token_hex(num_bytes)


def generate_label(
    adjectives: Sequence[str],
    nouns: Sequence[str],
    choice: Callable[[Sequence[str]], str] = secrets.choice,
) -> str:
    return f"{choice(adjectives)} {choice(nouns)}"


# --- Administration ---


def _validate_create(inp: CreateInviteInput, time: TimePort) -> list[InviteValidationError]:
    errors: list[InviteValidationError] = []

    if inp.max_uses is not None and inp.max_uses < 1:
        errors.append(
            InviteValidationError(
                code="MAX_USES_INVALID",
                message="Max uses must be a positive number, or empty for unlimited",
                field="max_uses",
            )
        )

    if inp.expires_at is not None and as_utc(inp.expires_at) <= time.now_utc():
        errors.append(
            InviteValidationError(
                code="EXPIRY_IN_PAST",
                message="Invite expiry must be in the future",
                field="expires_at",
            )
        )

    for name in (
        "user_expiry_months",
        "user_expiry_days",
        "user_expiry_hours",
        "user_expiry_minutes",
    ):
        if getattr(inp, name) < 0:
            errors.append(
                InviteValidationError(
                    code="DURATION_NEGATIVE",
                    message="Account expiry components cannot be negative",
                    field=name,
                )
            )

    return errors


def run_create(
    inp: CreateInviteInput,
    invite_repo: InviteRepoPort,
    profile_repo: ProfileLookupPort,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    rules: InviteRules,
    time: TimePort,
) -> InviteOutput:
    if not policy.can_manage_invites(inp.creator):
        return InviteOutput(success=False, error="User cannot create invites")

    errors = _validate_create(inp, time)

    profile_id = inp.profile_id
    if profile_id is not None:
        if profile_repo.get_by_id(profile_id) is None:
            errors.append(
                InviteValidationError(
                    code="PROFILE_NOT_FOUND", message="Profile not found", field="profile_id"
                )
            )
    elif rules.attach_default_profile:
        default = profile_repo.get_default()
        profile_id = default.id if default else None

    if errors:
        return InviteOutput(success=False, error=errors[0].message, errors=errors)

    now = time.now_utc()
    label = (inp.label or "").strip() or generate_label(rules.label_adjectives, rules.label_nouns)

    invite = Invite(
        id=uuid4(),
        code=generate_code(rules.code_bytes),
        label=label,
        user_label=(inp.user_label or "").strip() or None,
        profile_id=profile_id,
        max_uses=inp.max_uses,
        used_count=0,
        expires_at=as_utc(inp.expires_at) if inp.expires_at else None,
        user_expiry_enabled=inp.user_expiry_enabled,
        user_expiry_months=inp.user_expiry_months,
        user_expiry_days=inp.user_expiry_days,
        user_expiry_hours=inp.user_expiry_hours,
        user_expiry_minutes=inp.user_expiry_minutes,
        created_at=now,
        created_by=inp.creator.username,
    )
    invite_repo.create(invite)

    activity.save(
        ActivityEntry(
            type="invite_created",
            message=f"Invite '{label}' created by {inp.creator.username}",
            timestamp=now,
            invite_code=invite.code,
            created_by=inp.creator.username,
            metadata={
                "max_uses": invite.max_uses,
                "profile_id": str(profile_id) if profile_id else None,
            },
        )
    )
    logger.info("Invite %s created by %s", _mask(invite.code), inp.creator.username)
    return InviteOutput(invite=invite, success=True)


def _safe_evaluate(invite: Invite, time: TimePort) -> InviteEvaluation:
    try:
        return evaluate(invite, time.now_utc())
    except InvalidDurationError as e:
        logger.error("Invite %s has malformed expiry settings: %s", _mask(invite.code), e)
        return InviteEvaluation(
            usable=False,
            reason=RedemptionErrorKind.INVALID_DURATION,
            account_expiry=None,
            uses_remaining=uses_remaining(invite),
        )


def run_list(
    inp: ListInvitesInput,
    invite_repo: InviteRepoPort,
    policy: PolicyEngine,
    time: TimePort,
) -> InviteListOutput:
    if not policy.can_manage_invites(inp.actor):
        return InviteListOutput(invites=[], success=False, error="Access denied")

    items = [
        InviteWithStatus(invite=invite, evaluation=_safe_evaluate(invite, time))
        for invite in invite_repo.list_all()
    ]
    return InviteListOutput(invites=items, success=True)


def run_delete(
    inp: DeleteInviteInput,
    invite_repo: InviteRepoPort,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    time: TimePort,
) -> InviteOutput:
    if not policy.can_manage_invites(inp.actor):
        return InviteOutput(success=False, error="Access denied")

    invite = invite_repo.get_by_id(inp.invite_id)
    if invite is None:
        return InviteOutput(success=False, error="Invite not found")

    invite_repo.delete(invite.id)
    activity.save(
        ActivityEntry(
            type="invite_deleted",
            message=f"Invite '{invite.label}' deleted by {inp.actor.username}",
            timestamp=time.now_utc(),
            invite_code=invite.code,
            created_by=inp.actor.username,
            metadata={"used_count": invite.used_count, "max_uses": invite.max_uses},
        )
    )
    return InviteOutput(invite=invite, success=True)


def run_lookup(
    inp: LookupInviteInput,
    invite_repo: InviteRepoPort,
    time: TimePort,
) -> LookupOutput:
    """Public view of an invite, evaluated exactly as redemption will evaluate it."""
    invite = invite_repo.get_by_code(inp.code)
    if invite is None:
        return LookupOutput(success=False, error=_error(RedemptionErrorKind.INVITE_NOT_FOUND))

    evaluation = _safe_evaluate(invite, time)
    if evaluation.reason == RedemptionErrorKind.INVALID_DURATION:
        return LookupOutput(success=False, error=_error(RedemptionErrorKind.INVALID_DURATION))

    return LookupOutput(invite=invite, evaluation=evaluation, success=True)


# --- Redemption ---


class _RedemptionAborted(Exception):
    """Raised inside the unit of work to roll it back with a typed error."""

    def __init__(self, error: RedemptionError):
        super().__init__(error.message)
        self.error = error


def _redeem_once(
    inp: RedeemInviteInput,
    store: RedemptionStorePort,
    media_server: MediaServerPort,
    password_hash: str,
    validator: AccountValidator,
    time: TimePort,
) -> AppUser:
    jellyfin_user_id: str | None = None
    try:
        with store.transaction() as unit:
            invite = unit.get_invite_by_code(inp.code)
            if invite is None:
                raise _RedemptionAborted(_error(RedemptionErrorKind.INVITE_NOT_FOUND))

            now = time.now_utc()
            try:
                evaluation = evaluate(invite, now)
            except InvalidDurationError as e:
                logger.error("Invite %s has malformed expiry settings: %s", _mask(inp.code), e)
                raise _RedemptionAborted(_error(RedemptionErrorKind.INVALID_DURATION)) from e

            if not evaluation.usable:
                assert evaluation.reason is not None
                raise _RedemptionAborted(_error(evaluation.reason))

            field_errors = validator.validate(inp.username, inp.password, inp.email)
            if field_errors:
                first = field_errors[0]
                raise _RedemptionAborted(
                    _error(RedemptionErrorKind.INVALID_ACCOUNT_INPUT, first.message, first.field)
                )

            if unit.username_exists(inp.username):
                raise _RedemptionAborted(
                    _error(
                        RedemptionErrorKind.INVALID_ACCOUNT_INPUT,
                        "Username is already taken",
                        "username",
                    )
                )

            if not unit.consume_use(invite.code, invite.used_count):
                raise ConcurrencyConflictError(f"Usage counter of {_mask(inp.code)} moved")

            profile = unit.get_profile(invite.profile_id) if invite.profile_id else None

            jellyfin_user_id = media_server.create_user(inp.username, inp.password)
            if profile is not None:
                media_server.set_library_access(jellyfin_user_id, profile.library_access)

            user = AppUser(
                id=uuid4(),
                username=inp.username,
                password_hash=password_hash,
                email=inp.email or None,
                is_admin=False,
                jellyfin_user_id=jellyfin_user_id,
                invite_code=invite.code,
                expires_at=evaluation.account_expiry,
                disabled=False,
                created_at=now,
                updated_at=now,
            )
            unit.create_account(user)
            if profile is not None:
                unit.apply_profile(user.id, profile)
                user.profile_id = profile.id

            unit.record_activity(
                ActivityEntry(
                    type="invite_used",
                    message=f"Invite '{invite.label}' used by {user.username}",
                    timestamp=now,
                    username=user.username,
                    user_id=user.id,
                    invite_code=invite.code,
                    metadata={"used_count": invite.used_count + 1, "max_uses": invite.max_uses},
                )
            )
            unit.record_activity(
                ActivityEntry(
                    type="account_created",
                    message=f"Account {user.username} created from invite",
                    timestamp=now,
                    username=user.username,
                    user_id=user.id,
                    invite_code=invite.code,
                    metadata={
                        "expires_at": user.expires_at.isoformat() if user.expires_at else None,
                        "profile_id": str(user.profile_id) if user.profile_id else None,
                    },
                )
            )
        return user
    except BaseException:
        if jellyfin_user_id is not None:
            _remove_media_user(media_server, jellyfin_user_id)
        raise


def _remove_media_user(media_server: MediaServerPort, jellyfin_user_id: str) -> None:
    try:
        media_server.delete_user(jellyfin_user_id)
    except Exception:
        logger.exception(
            "Could not remove Jellyfin user %s after a failed redemption", jellyfin_user_id
        )


def run_redeem(
    inp: RedeemInviteInput,
    store: RedemptionStorePort,
    media_server: MediaServerPort,
    auth_adapter: AuthAdapterPort,
    validator: AccountValidator,
    time: TimePort,
    conflict_retries: int = 1,
) -> RedeemOutput:
    """
    Redeem an invite: re-validate it, consume one use and create the account.

    Consuming the use, creating the account and applying the profile happen in
    one storage transaction. Anything that fails inside it rolls the whole
    unit back, and a Jellyfin user created along the way is removed again.
    A lost race is retried ``conflict_retries`` times with fresh data.

    The password is hashed before the transaction opens so the write lock is
    only held for the Jellyfin calls and the inserts.
    """
    password_hash = auth_adapter.hash_password(inp.password)
    for attempt in range(conflict_retries + 1):
        try:
            user = _redeem_once(inp, store, media_server, password_hash, validator, time)
        except _RedemptionAborted as e:
            logger.info(
                "Invite %s rejected for %s: %s", _mask(inp.code), inp.username, e.error.kind.value
            )
            return RedeemOutput(success=False, error=e.error)
        except ConcurrencyConflictError as e:
            logger.warning(
                "Redemption of %s conflicted (attempt %d): %s", _mask(inp.code), attempt + 1, e
            )
            continue
        except DuplicateAccountError:
            return RedeemOutput(
                success=False,
                error=_error(
                    RedemptionErrorKind.INVALID_ACCOUNT_INPUT,
                    "Username is already taken",
                    "username",
                ),
            )
        except Exception:
            logger.exception("Redemption of %s failed while provisioning", _mask(inp.code))
            return RedeemOutput(
                success=False, error=_error(RedemptionErrorKind.PROVISIONING_FAILED)
            )

        logger.info("Invite %s redeemed by %s", _mask(inp.code), user.username)
        return RedeemOutput(user=user, success=True)

    return RedeemOutput(success=False, error=_error(RedemptionErrorKind.CONCURRENCY_CONFLICT))


def run(
    inp: (
        CreateInviteInput
        | ListInvitesInput
        | DeleteInviteInput
        | LookupInviteInput
        | RedeemInviteInput
    ),
    *,
    invite_repo: InviteRepoPort | None = None,
    profile_repo: ProfileLookupPort | None = None,
    activity: ActivityLogPort | None = None,
    store: RedemptionStorePort | None = None,
    media_server: MediaServerPort | None = None,
    auth_adapter: AuthAdapterPort | None = None,
    validator: AccountValidator | None = None,
    policy: PolicyEngine | None = None,
    rules: InviteRules | None = None,
    time: TimePort | None = None,
) -> InviteOutput | InviteListOutput | LookupOutput | RedeemOutput:
    if isinstance(inp, CreateInviteInput):
        assert invite_repo and profile_repo and activity and policy and rules and time
        return run_create(inp, invite_repo, profile_repo, activity, policy, rules, time)

    elif isinstance(inp, ListInvitesInput):
        assert invite_repo and policy and time
        return run_list(inp, invite_repo, policy, time)

    elif isinstance(inp, DeleteInviteInput):
        assert invite_repo and activity and policy and time
        return run_delete(inp, invite_repo, activity, policy, time)

    elif isinstance(inp, LookupInviteInput):
        assert invite_repo and time
        return run_lookup(inp, invite_repo, time)

    elif isinstance(inp, RedeemInviteInput):
        assert store and media_server and auth_adapter and validator and time
        return run_redeem(inp, store, media_server, auth_adapter, validator, time)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
