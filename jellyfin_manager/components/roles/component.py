"""
Roles component - named account roles and their assignment.

A role labels a group of accounts. Assigning a role with ``is_admin`` set
promotes the account; assigning one without it demotes the account.
Accounts with no role assigned fall under the default role, if one exists.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from jellyfin_manager.domain.entities import ActivityEntry, Role
from jellyfin_manager.domain.policy import PolicyEngine

from .models import (
    AssignRoleInput,
    AssignRoleOutput,
    CreateRoleInput,
    DeleteRoleInput,
    GetRoleInput,
    GetUserRoleInput,
    ListRolesInput,
    RoleListOutput,
    RoleOutput,
    RoleValidationError,
    UpdateRoleInput,
)
from .ports import ActivityLogPort, RoleRepoPort, TimePort, UserRepoPort

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500


def _validate_name(
    name: str, repo: RoleRepoPort, current: Role | None = None
) -> RoleValidationError | None:
    if not name:
        return RoleValidationError("NAME_REQUIRED", "Role name is required", "name")
    if len(name) > MAX_NAME_LENGTH:
        return RoleValidationError(
            "NAME_TOO_LONG", f"Role name must be at most {MAX_NAME_LENGTH} characters", "name"
        )
    existing = repo.get_by_name(name)
    if existing is not None and (current is None or existing.id != current.id):
        return RoleValidationError("NAME_TAKEN", "A role with this name already exists", "name")
    return None


def _validate_details(
    description: str | None, permissions: dict[str, Any] | None
) -> RoleValidationError | None:
    if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
        return RoleValidationError(
            "DESCRIPTION_TOO_LONG",
            f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
            "description",
        )
    # Flags only: {"can_invite": true}
    if permissions is not None and not all(
        isinstance(value, bool) for value in permissions.values()
    ):
        return RoleValidationError(
            "PERMISSIONS_INVALID", "Permission values must be true or false", "permissions"
        )
    return None


def run_list(inp: ListRolesInput, repo: RoleRepoPort, policy: PolicyEngine) -> RoleListOutput:
    if not policy.can_manage_roles(inp.actor):
        return RoleListOutput(roles=[], success=False, error="Access denied")
    return RoleListOutput(roles=repo.list_all(), success=True)


def run_get(inp: GetRoleInput, repo: RoleRepoPort, policy: PolicyEngine) -> RoleOutput:
    if not policy.can_manage_roles(inp.actor):
        return RoleOutput(success=False, error="Access denied")
    role = repo.get_by_id(inp.role_id)
    if role is None:
        return RoleOutput(success=False, error="Role not found")
    return RoleOutput(role=role, success=True)


def run_create(
    inp: CreateRoleInput,
    repo: RoleRepoPort,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    time: TimePort,
) -> RoleOutput:
    if not policy.can_manage_roles(inp.actor):
        return RoleOutput(success=False, error="Access denied")

    name = inp.name.strip()
    error = _validate_name(name, repo) or _validate_details(inp.description, inp.permissions)
    if error:
        return RoleOutput(success=False, error=error.message, errors=[error])

    now = time.now_utc()
    role = Role(
        id=uuid4(),
        name=name,
        description=inp.description,
        is_default=inp.is_default,
        is_admin=inp.is_admin,
        permissions=dict(inp.permissions or {}),
        created_at=now,
        updated_at=now,
    )
    repo.save(role)

    activity.save(
        ActivityEntry(
            type="role_created",
            message=f"Role '{role.name}' created by {inp.actor.username}",
            timestamp=now,
            created_by=inp.actor.username,
            metadata={"role_id": str(role.id), "is_admin": role.is_admin},
        )
    )
    logger.info("Role %s created", role.name)
    return RoleOutput(role=role, success=True)


def run_update(
    inp: UpdateRoleInput, repo: RoleRepoPort, policy: PolicyEngine, time: TimePort
) -> RoleOutput:
    """Change the given fields. Members keep their admin flag until reassigned."""
    if not policy.can_manage_roles(inp.actor):
        return RoleOutput(success=False, error="Access denied")

    role = repo.get_by_id(inp.role_id)
    if role is None:
        return RoleOutput(success=False, error="Role not found")

    name = inp.name.strip() if inp.name is not None else None
    error = (_validate_name(name, repo, current=role) if name is not None else None) or (
        _validate_details(inp.description, inp.permissions)
    )
    if error:
        return RoleOutput(success=False, error=error.message, errors=[error])

    if name is not None:
        role.name = name
    if inp.description is not None:
        role.description = inp.description
    if inp.is_default is not None:
        role.is_default = inp.is_default
    if inp.is_admin is not None:
        role.is_admin = inp.is_admin
    if inp.permissions is not None:
        role.permissions = dict(inp.permissions)

    role.updated_at = time.now_utc()
    repo.save(role)
    return RoleOutput(role=role, success=True)


def run_delete(
    inp: DeleteRoleInput,
    repo: RoleRepoPort,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    time: TimePort,
) -> RoleOutput:
    """Delete a role. Its members are left without one and keep their admin flag."""
    if not policy.can_manage_roles(inp.actor):
        return RoleOutput(success=False, error="Access denied")

    role = repo.get_by_id(inp.role_id)
    if role is None:
        return RoleOutput(success=False, error="Role not found")

    members = repo.count_members(role.id)
    if not repo.delete(role.id):
        return RoleOutput(success=False, error="Role not found")

    activity.save(
        ActivityEntry(
            type="role_deleted",
            message=f"Role '{role.name}' deleted by {inp.actor.username}",
            timestamp=time.now_utc(),
            created_by=inp.actor.username,
            metadata={"role_id": str(role.id), "members": members},
        )
    )
    logger.info("Role %s deleted, %d accounts unassigned", role.name, members)
    return RoleOutput(role=role, success=True)


def run_assign(
    inp: AssignRoleInput,
    repo: RoleRepoPort,
    users: UserRepoPort,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    time: TimePort,
) -> AssignRoleOutput:
    if not policy.can_manage_roles(inp.actor):
        return AssignRoleOutput(success=False, error="Access denied")

    user = users.get_by_id(inp.user_id)
    if user is None:
        return AssignRoleOutput(success=False, error="User not found")

    role = None
    if inp.role_id is not None:
        role = repo.get_by_id(inp.role_id)
        if role is None:
            return AssignRoleOutput(success=False, error="Role not found")
        if user.id == inp.actor.id and user.is_admin and not role.is_admin:
            return AssignRoleOutput(
                success=False, error="Cannot remove admin role from yourself"
            )
        user.is_admin = role.is_admin

    user.role_id = inp.role_id
    now = time.now_utc()
    user.updated_at = now
    users.save(user)

    role_name = role.name if role is not None else None
    activity.save(
        ActivityEntry(
            type="role_assigned",
            message=(
                f"Role '{role_name}' assigned to {user.username} by {inp.actor.username}"
                if role_name
                else f"Role cleared for {user.username} by {inp.actor.username}"
            ),
            timestamp=now,
            username=user.username,
            user_id=user.id,
            created_by=inp.actor.username,
            metadata={"role_id": str(inp.role_id) if inp.role_id else None},
        )
    )
    return AssignRoleOutput(user=user, role=role, success=True)


def run_get_user_role(
    inp: GetUserRoleInput, repo: RoleRepoPort, users: UserRepoPort, policy: PolicyEngine
) -> RoleOutput:
    """The account's effective role: its own, else the default role."""
    if inp.actor.id != inp.user_id and not policy.can_manage_roles(inp.actor):
        return RoleOutput(success=False, error="Access denied")

    user = users.get_by_id(inp.user_id)
    if user is None:
        return RoleOutput(success=False, error="User not found")

    role = repo.get_by_id(user.role_id) if user.role_id is not None else None
    return RoleOutput(role=role or repo.get_default(), success=True)


def run(
    inp: (
        ListRolesInput
        | GetRoleInput
        | CreateRoleInput
        | UpdateRoleInput
        | DeleteRoleInput
        | AssignRoleInput
        | GetUserRoleInput
    ),
    *,
    repo: RoleRepoPort,
    policy: PolicyEngine,
    users: UserRepoPort | None = None,
    activity: ActivityLogPort | None = None,
    time: TimePort | None = None,
) -> RoleOutput | RoleListOutput | AssignRoleOutput:
    if isinstance(inp, ListRolesInput):
        return run_list(inp, repo, policy)

    elif isinstance(inp, GetRoleInput):
        return run_get(inp, repo, policy)

    elif isinstance(inp, CreateRoleInput):
        assert activity and time
        return run_create(inp, repo, activity, policy, time)

    elif isinstance(inp, UpdateRoleInput):
        assert time
        return run_update(inp, repo, policy, time)

    elif isinstance(inp, DeleteRoleInput):
        assert activity and time
        return run_delete(inp, repo, activity, policy, time)

    elif isinstance(inp, AssignRoleInput):
        assert users and activity and time
        return run_assign(inp, repo, users, activity, policy, time)

    elif isinstance(inp, GetUserRoleInput):
        assert users
        return run_get_user_role(inp, repo, users, policy)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
