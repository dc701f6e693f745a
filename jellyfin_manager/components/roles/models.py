from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from jellyfin_manager.domain.entities import AppUser, Role


@dataclass(frozen=True)
class RoleValidationError:
    code: str
    message: str
    field: str | None = None


@dataclass
class CreateRoleInput:
    actor: AppUser
    name: str
    description: str | None = None
    is_default: bool = False
    is_admin: bool = False
    permissions: dict[str, Any] | None = None


@dataclass
class UpdateRoleInput:
    actor: AppUser
    role_id: UUID
    name: str | None = None
    description: str | None = None
    is_default: bool | None = None
    is_admin: bool | None = None
    permissions: dict[str, Any] | None = None


@dataclass
class DeleteRoleInput:
    actor: AppUser
    role_id: UUID


@dataclass
class GetRoleInput:
    actor: AppUser
    role_id: UUID


@dataclass
class ListRolesInput:
    actor: AppUser


@dataclass
class AssignRoleInput:
    """Assign ``role_id`` to an account, or clear its role when it is None."""

    actor: AppUser
    user_id: UUID
    role_id: UUID | None


@dataclass
class GetUserRoleInput:
    actor: AppUser
    user_id: UUID


@dataclass
class RoleOutput:
    role: Role | None = None
    success: bool = False
    error: str | None = None
    errors: list[RoleValidationError] = field(default_factory=list)


@dataclass
class RoleListOutput:
    roles: list[Role]
    success: bool = False
    error: str | None = None


@dataclass
class AssignRoleOutput:
    user: AppUser | None = None
    role: Role | None = None
    success: bool = False
    error: str | None = None
