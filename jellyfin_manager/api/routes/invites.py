import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from jellyfin_manager.api.deps import (
    client_ip,
    get_account_validator,
    get_activity_repo,
    get_auth_adapter,
    get_clock,
    get_current_user,
    get_invite_repo,
    get_policy,
    get_profile_repo,
    get_provisioning_media_server,
    get_rate_limiter,
    get_redemption_store,
    get_rules,
)
from jellyfin_manager.api.schemas import (
    InviteCreateRequest,
    InviteLookupResponse,
    InviteResponse,
    RedeemRequest,
    RedeemResponse,
    RedemptionErrorResponse,
    UseInviteRequest,
)
from jellyfin_manager.app_shell.rate_limit import RateLimiter
from jellyfin_manager.components.invite import (
    CreateInviteInput,
    DeleteInviteInput,
    ListInvitesInput,
    LookupInviteInput,
    RedeemInviteInput,
    RedemptionError,
    RedemptionErrorKind,
    run_create,
    run_delete,
    run_list,
    run_lookup,
    run_redeem,
)
from jellyfin_manager.domain.entities import AppUser
from jellyfin_manager.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_BY_KIND: dict[RedemptionErrorKind, int] = {
    RedemptionErrorKind.INVITE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RedemptionErrorKind.INVITE_EXPIRED: status.HTTP_410_GONE,
    RedemptionErrorKind.INVITE_EXHAUSTED: status.HTTP_409_CONFLICT,
    RedemptionErrorKind.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    RedemptionErrorKind.INVALID_ACCOUNT_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    RedemptionErrorKind.INVALID_DURATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    RedemptionErrorKind.PROVISIONING_FAILED: status.HTTP_502_BAD_GATEWAY,
}

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    code: {"model": RedemptionErrorResponse} for code in sorted(set(STATUS_BY_KIND.values()))
}


def redemption_error_response(
    error: RedemptionError, status_code: int | None = None
) -> JSONResponse:
    body = RedemptionErrorResponse(message=error.message, kind=error.kind.value, field=error.field)
    return JSONResponse(
        status_code=status_code or STATUS_BY_KIND[error.kind],
        content=body.model_dump(exclude_none=True),
    )


def _rate_limited() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"message": "Too many attempts, try again later", "kind": "RateLimited"},
    )


# --- Admin ---


@router.get("", response_model=list[InviteResponse])
def list_invites(
    current_user: AppUser = Depends(get_current_user),
    invite_repo: Any = Depends(get_invite_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> list[InviteResponse]:
    """List all invites with their current status (admin only)."""
    result = run_list(ListInvitesInput(actor=current_user), invite_repo, policy, clock)
    if not result.success:
        raise HTTPException(status_code=403, detail=result.error or "Access denied")

    return [
        InviteResponse.build(item.invite, item.evaluation.status, item.evaluation.uses_remaining)
        for item in result.invites
    ]


@router.post("", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
def create_invite(
    req: InviteCreateRequest,
    current_user: AppUser = Depends(get_current_user),
    invite_repo: Any = Depends(get_invite_repo),
    profile_repo: Any = Depends(get_profile_repo),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    rules: Rules = Depends(get_rules),
    clock: Any = Depends(get_clock),
) -> InviteResponse:
    """Create an invite (admin only)."""
    inp = CreateInviteInput(creator=current_user, **req.model_dump())
    result = run_create(
        inp, invite_repo, profile_repo, activity_repo, policy, rules.invites, clock
    )

    if not result.success or result.invite is None:
        if result.error == "User cannot create invites":
            raise HTTPException(status_code=403, detail="Access denied")
        raise HTTPException(status_code=400, detail=result.error)

    invite = result.invite
    return InviteResponse.build(invite, "active", invite.max_uses)


@router.delete("/{invite_id}")
def delete_invite(
    invite_id: UUID,
    current_user: AppUser = Depends(get_current_user),
    invite_repo: Any = Depends(get_invite_repo),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> dict[str, str]:
    """Delete an invite (admin only). Accounts created from it are kept."""
    result = run_delete(
        DeleteInviteInput(actor=current_user, invite_id=invite_id),
        invite_repo,
        activity_repo,
        policy,
        clock,
    )
    if not result.success:
        if result.error == "Access denied":
            raise HTTPException(status_code=403, detail="Access denied")
        raise HTTPException(status_code=404, detail=result.error)
    return {"status": "deleted"}


# --- Public ---


@router.get("/by-code/{code}", response_model=InviteLookupResponse)
def lookup_invite(
    code: str,
    invite_repo: Any = Depends(get_invite_repo),
    clock: Any = Depends(get_clock),
) -> Any:
    """Public view of an invite, evaluated the same way redemption evaluates it."""
    result = run_lookup(LookupInviteInput(code=code), invite_repo, clock)
    if not result.success or result.invite is None or result.evaluation is None:
        assert result.error is not None
        return redemption_error_response(result.error)

    invite, evaluation = result.invite, result.evaluation
    return InviteLookupResponse(
        code=invite.code,
        label=invite.label,
        user_label=invite.user_label,
        status=evaluation.status,  # type: ignore[arg-type]
        usable=evaluation.usable,
        expires_at=invite.expires_at,
        max_uses=invite.max_uses,
        used_count=invite.used_count,
        uses_remaining=evaluation.uses_remaining,
        user_expiry_enabled=invite.user_expiry_enabled,
        user_expiry_months=invite.user_expiry_months,
        user_expiry_days=invite.user_expiry_days,
        user_expiry_hours=invite.user_expiry_hours,
        user_expiry_minutes=invite.user_expiry_minutes,
        account_expires_at=evaluation.account_expiry,
    )


def _redeem(
    request: Request,
    code: str,
    req: UseInviteRequest,
    store: Any,
    media_server: Any,
    auth_adapter: Any,
    validator: Any,
    clock: Any,
    rules: Rules,
    limiter: RateLimiter,
) -> Any:
    if not limiter.check_redeem(client_ip(request)):
        return _rate_limited()

    if media_server is None:
        logger.error("Redemption attempted while no Jellyfin server is connected")
        return redemption_error_response(
            RedemptionError(
                kind=RedemptionErrorKind.PROVISIONING_FAILED,
                message="Account creation is currently unavailable",
            ),
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    result = run_redeem(
        RedeemInviteInput(
            code=code, username=req.username, password=req.password, email=req.email
        ),
        store,
        media_server,
        auth_adapter,
        validator,
        clock,
        conflict_retries=rules.redemption.conflict_retries,
    )
    if not result.success or result.user is None:
        assert result.error is not None
        return redemption_error_response(result.error)

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=RedeemResponse.model_validate(result.user).model_dump(mode="json"),
    )


@router.post(
    "/use/{code}",
    status_code=status.HTTP_201_CREATED,
    response_model=RedeemResponse,
    responses=ERROR_RESPONSES,
)
def use_invite(
    code: str,
    req: UseInviteRequest,
    request: Request,
    store: Any = Depends(get_redemption_store),
    media_server: Any = Depends(get_provisioning_media_server),
    auth_adapter: Any = Depends(get_auth_adapter),
    validator: Any = Depends(get_account_validator),
    clock: Any = Depends(get_clock),
    rules: Rules = Depends(get_rules),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Any:
    """Redeem the invite in the path and create an account."""
    return _redeem(
        request, code, req, store, media_server, auth_adapter, validator, clock, rules, limiter
    )


@router.post(
    "/redeem",
    status_code=status.HTTP_201_CREATED,
    response_model=RedeemResponse,
    responses=ERROR_RESPONSES,
)
def redeem_invite(
    req: RedeemRequest,
    request: Request,
    store: Any = Depends(get_redemption_store),
    media_server: Any = Depends(get_provisioning_media_server),
    auth_adapter: Any = Depends(get_auth_adapter),
    validator: Any = Depends(get_account_validator),
    clock: Any = Depends(get_clock),
    rules: Rules = Depends(get_rules),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Any:
    """Redeem an invite given in the body and create an account."""
    return _redeem(
        request, req.code, req, store, media_server, auth_adapter, validator, clock, rules,
        limiter,
    )
