import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from jellyfin_manager.adapters.jellyfin.client import JellyfinError
from jellyfin_manager.api.deps import (
    get_account_validator,
    get_activity_repo,
    get_auth_adapter,
    get_clock,
    get_current_user,
    get_optional_media_server,
    get_policy,
    get_profile_repo,
    get_role_repo,
    get_user_repo,
)
from jellyfin_manager.api.schemas import (
    ActivityResponse,
    ExpireUsersResponse,
    ExpiryFailureResponse,
    RoleAssignRequest,
    RoleResponse,
    UserCreateRequest,
    UserResponse,
    UserRoleResponse,
    UserUpdateRequest,
)
from jellyfin_manager.components.activity import UserActivityInput, run_user_activity
from jellyfin_manager.components.auth import (
    CreateUserInput,
    DeleteUserInput,
    ListUsersInput,
    UpdateUserInput,
    UserOutput,
    run_create_user,
    run_delete_user,
    run_list_users,
    run_update_user,
)
from jellyfin_manager.components.expiry import run_disable_expired
from jellyfin_manager.components.roles import (
    AssignRoleInput,
    GetUserRoleInput,
    run_assign,
    run_get_user_role,
)
from jellyfin_manager.domain.entities import AppUser

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_for(result: UserOutput) -> None:
    if result.error == "Access denied":
        raise HTTPException(status_code=403, detail="Access denied")
    if result.error == "User not found":
        raise HTTPException(status_code=404, detail=result.error)
    if result.error == "Jellyfin server is not connected":
        raise HTTPException(status_code=503, detail=result.error)
    raise HTTPException(status_code=400, detail=result.error)


def _jellyfin_failed(e: JellyfinError) -> HTTPException:
    logger.error("Jellyfin request failed: %s", e)
    return HTTPException(status_code=502, detail="The Jellyfin server rejected the request")


@router.get("", response_model=list[UserResponse])
def list_users(
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    policy: Any = Depends(get_policy),
) -> list[UserResponse]:
    """List all accounts (admin only)."""
    result = run_list_users(ListUsersInput(actor=current_user), user_repo=user_repo, policy=policy)

    if not result.success:
        raise HTTPException(status_code=403, detail=result.error or "Access denied")

    return result.users  # type: ignore


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    req: UserCreateRequest,
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    profile_repo: Any = Depends(get_profile_repo),
    activity_repo: Any = Depends(get_activity_repo),
    media_server: Any = Depends(get_optional_media_server),
    auth_adapter: Any = Depends(get_auth_adapter),
    validator: Any = Depends(get_account_validator),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> UserResponse:
    """Create an account directly (admin only)."""
    inp = CreateUserInput(actor=current_user, **req.model_dump())
    try:
        result = run_create_user(
            inp,
            user_repo=user_repo,
            profile_repo=profile_repo,
            activity=activity_repo,
            media_server=media_server,
            auth_adapter=auth_adapter,
            validator=validator,
            policy=policy,
            time=clock,
        )
    except JellyfinError as e:
        raise _jellyfin_failed(e) from e

    if not result.success:
        _raise_for(result)

    return result.user  # type: ignore


@router.post("/expire", response_model=ExpireUsersResponse)
def expire_users(
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    activity_repo: Any = Depends(get_activity_repo),
    media_server: Any = Depends(get_optional_media_server),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> ExpireUsersResponse:
    """Disable every account whose expiry has passed (admin only)."""
    if not policy.can_manage_users(current_user):
        raise HTTPException(status_code=403, detail="Access denied")

    out = run_disable_expired(user_repo, media_server, activity_repo, clock)
    return ExpireUsersResponse(
        disabled=[UserResponse.model_validate(u) for u in out.disabled],
        failures=[
            ExpiryFailureResponse(username=f.username, message=f.message) for f in out.failures
        ],
    )


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    req: UserUpdateRequest,
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    activity_repo: Any = Depends(get_activity_repo),
    media_server: Any = Depends(get_optional_media_server),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> UserResponse:
    """Update an account (admin only)."""
    inp = UpdateUserInput(actor=current_user, target_id=user_id, **req.model_dump())
    try:
        result = run_update_user(
            inp,
            user_repo=user_repo,
            activity=activity_repo,
            media_server=media_server,
            policy=policy,
            time=clock,
        )
    except JellyfinError as e:
        raise _jellyfin_failed(e) from e

    if not result.success:
        _raise_for(result)

    return result.user  # type: ignore


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    activity_repo: Any = Depends(get_activity_repo),
    media_server: Any = Depends(get_optional_media_server),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> dict[str, str]:
    """Delete an account and its Jellyfin user (admin only)."""
    try:
        result = run_delete_user(
            DeleteUserInput(actor=current_user, target_id=user_id),
            user_repo=user_repo,
            activity=activity_repo,
            media_server=media_server,
            policy=policy,
            time=clock,
        )
    except JellyfinError as e:
        raise _jellyfin_failed(e) from e

    if not result.success:
        _raise_for(result)

    return {"status": "deleted"}


@router.get("/{user_id}/activity", response_model=list[ActivityResponse])
def user_activity(
    user_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    current_user: AppUser = Depends(get_current_user),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
) -> list[ActivityResponse]:
    """Activity entries for one account, newest first (admin only)."""
    result = run_user_activity(
        UserActivityInput(actor=current_user, user_id=user_id, limit=limit),
        repo=activity_repo,
        policy=policy,
    )
    if not result.success:
        raise HTTPException(status_code=403, detail=result.error or "Access denied")
    return result.entries  # type: ignore


@router.get("/{user_id}/role", response_model=UserRoleResponse)
def get_user_role(
    user_id: UUID,
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    role_repo: Any = Depends(get_role_repo),
    policy: Any = Depends(get_policy),
) -> UserRoleResponse:
    """The account's role, or the default role when none is assigned."""
    result = run_get_user_role(
        GetUserRoleInput(actor=current_user, user_id=user_id), role_repo, user_repo, policy
    )
    if not result.success:
        status_code = 403 if result.error == "Access denied" else 404
        raise HTTPException(status_code=status_code, detail=result.error)
    role = RoleResponse.model_validate(result.role) if result.role else None
    return UserRoleResponse(user_id=user_id, role=role)


@router.post("/{user_id}/role", response_model=UserResponse)
def assign_user_role(
    user_id: UUID,
    req: RoleAssignRequest,
    current_user: AppUser = Depends(get_current_user),
    user_repo: Any = Depends(get_user_repo),
    role_repo: Any = Depends(get_role_repo),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> UserResponse:
    """Assign a role to an account, or clear it (admin only)."""
    result = run_assign(
        AssignRoleInput(actor=current_user, user_id=user_id, role_id=req.role_id),
        role_repo,
        user_repo,
        activity_repo,
        policy,
        clock,
    )
    if not result.success:
        if result.error == "Access denied":
            raise HTTPException(status_code=403, detail="Access denied")
        if result.error in ("User not found", "Role not found"):
            raise HTTPException(status_code=404, detail=result.error)
        raise HTTPException(status_code=400, detail=result.error)
    return result.user  # type: ignore
