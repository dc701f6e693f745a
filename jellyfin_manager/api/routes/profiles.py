import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from jellyfin_manager.adapters.jellyfin.client import JellyfinError
from jellyfin_manager.api.deps import (
    get_activity_repo,
    get_clock,
    get_current_user,
    get_optional_media_server,
    get_policy,
    get_profile_repo,
)
from jellyfin_manager.api.schemas import (
    ProfileCreateRequest,
    ProfileResponse,
    ProfileUpdateRequest,
)
from jellyfin_manager.components.profiles import (
    CreateProfileInput,
    DeleteProfileInput,
    GetProfileInput,
    ListProfilesInput,
    ProfileOutput,
    UpdateProfileInput,
    run_create,
    run_delete,
    run_get,
    run_list,
    run_update,
)
from jellyfin_manager.domain.entities import AppUser

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_for(result: ProfileOutput) -> None:
    if result.error == "Access denied":
        raise HTTPException(status_code=403, detail="Access denied")
    if result.error == "Profile not found":
        raise HTTPException(status_code=404, detail=result.error)
    if result.errors:
        err = result.errors[0]
        raise HTTPException(
            status_code=400,
            detail={"code": err.code, "message": err.message, "field": err.field},
        )
    raise HTTPException(status_code=400, detail=result.error)


@router.get("", response_model=list[ProfileResponse])
def list_profiles(
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_profile_repo),
    policy: Any = Depends(get_policy),
) -> list[ProfileResponse]:
    result = run_list(ListProfilesInput(actor=current_user), repo, policy)
    if not result.success:
        raise HTTPException(status_code=403, detail=result.error or "Access denied")
    return result.profiles  # type: ignore


@router.post("", response_model=ProfileResponse, status_code=201)
def create_profile(
    req: ProfileCreateRequest,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_profile_repo),
    media_server: Any = Depends(get_optional_media_server),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> ProfileResponse:
    """Create a profile, optionally copying library access from a Jellyfin user."""
    inp = CreateProfileInput(actor=current_user, **req.model_dump())
    try:
        result = run_create(inp, repo, media_server, activity_repo, policy, clock)
    except JellyfinError as e:
        logger.error("Could not read source user from Jellyfin: %s", e)
        raise HTTPException(status_code=502, detail="Could not read the source user") from e

    if not result.success:
        _raise_for(result)
    return result.profile  # type: ignore


@router.get("/{profile_id}", response_model=ProfileResponse)
def get_profile(
    profile_id: UUID,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_profile_repo),
    policy: Any = Depends(get_policy),
) -> ProfileResponse:
    result = run_get(GetProfileInput(actor=current_user, profile_id=profile_id), repo, policy)
    if not result.success:
        _raise_for(result)
    return result.profile  # type: ignore


@router.put("/{profile_id}", response_model=ProfileResponse)
def update_profile(
    profile_id: UUID,
    req: ProfileUpdateRequest,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_profile_repo),
    media_server: Any = Depends(get_optional_media_server),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> ProfileResponse:
    inp = UpdateProfileInput(actor=current_user, profile_id=profile_id, **req.model_dump())
    try:
        result = run_update(inp, repo, media_server, policy, clock)
    except JellyfinError as e:
        logger.error("Could not read source user from Jellyfin: %s", e)
        raise HTTPException(status_code=502, detail="Could not read the source user") from e

    if not result.success:
        _raise_for(result)
    return result.profile  # type: ignore


@router.delete("/{profile_id}")
def delete_profile(
    profile_id: UUID,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_profile_repo),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> dict[str, str]:
    """Delete a profile. Invites and accounts that referenced it keep working."""
    result = run_delete(
        DeleteProfileInput(actor=current_user, profile_id=profile_id),
        repo,
        activity_repo,
        policy,
        clock,
    )
    if not result.success:
        _raise_for(result)
    return {"status": "deleted"}
