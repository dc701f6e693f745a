from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from jellyfin_manager.api.deps import (
    get_activity_repo,
    get_clock,
    get_current_user,
    get_policy,
    get_role_repo,
)
from jellyfin_manager.api.schemas import RoleCreateRequest, RoleResponse, RoleUpdateRequest
from jellyfin_manager.components.roles import (
    CreateRoleInput,
    DeleteRoleInput,
    GetRoleInput,
    ListRolesInput,
    RoleOutput,
    UpdateRoleInput,
    run_create,
    run_delete,
    run_get,
    run_list,
    run_update,
)
from jellyfin_manager.domain.entities import AppUser

router = APIRouter()


def raise_for(result: RoleOutput) -> None:
    if result.error == "Access denied":
        raise HTTPException(status_code=403, detail="Access denied")
    if result.error in ("Role not found", "User not found"):
        raise HTTPException(status_code=404, detail=result.error)
    if result.errors:
        err = result.errors[0]
        raise HTTPException(
            status_code=400,
            detail={"code": err.code, "message": err.message, "field": err.field},
        )
    raise HTTPException(status_code=400, detail=result.error)


@router.get("", response_model=list[RoleResponse])
def list_roles(
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_role_repo),
    policy: Any = Depends(get_policy),
) -> list[RoleResponse]:
    result = run_list(ListRolesInput(actor=current_user), repo, policy)
    if not result.success:
        raise HTTPException(status_code=403, detail=result.error or "Access denied")
    return result.roles  # type: ignore


@router.post("", response_model=RoleResponse, status_code=201)
def create_role(
    req: RoleCreateRequest,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_role_repo),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> RoleResponse:
    result = run_create(
        CreateRoleInput(actor=current_user, **req.model_dump()), repo, activity_repo, policy, clock
    )
    if not result.success:
        raise_for(result)
    return result.role  # type: ignore


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: UUID,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_role_repo),
    policy: Any = Depends(get_policy),
) -> RoleResponse:
    result = run_get(GetRoleInput(actor=current_user, role_id=role_id), repo, policy)
    if not result.success:
        raise_for(result)
    return result.role  # type: ignore


@router.patch("/{role_id}", response_model=RoleResponse)
def update_role(
    role_id: UUID,
    req: RoleUpdateRequest,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_role_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> RoleResponse:
    """Change the given fields of a role. Existing members are not re-evaluated."""
    inp = UpdateRoleInput(actor=current_user, role_id=role_id, **req.model_dump())
    result = run_update(inp, repo, policy, clock)
    if not result.success:
        raise_for(result)
    return result.role  # type: ignore


@router.delete("/{role_id}")
def delete_role(
    role_id: UUID,
    current_user: AppUser = Depends(get_current_user),
    repo: Any = Depends(get_role_repo),
    activity_repo: Any = Depends(get_activity_repo),
    policy: Any = Depends(get_policy),
    clock: Any = Depends(get_clock),
) -> dict[str, str]:
    """Delete a role. Its members are left without one."""
    result = run_delete(
        DeleteRoleInput(actor=current_user, role_id=role_id),
        repo,
        activity_repo,
        policy,
        clock,
    )
    if not result.success:
        raise_for(result)
    return {"status": "deleted"}
