"""
Roles component - named account roles and their assignment.
"""

from .component import (
    run,
    run_assign,
    run_create,
    run_delete,
    run_get,
    run_get_user_role,
    run_list,
    run_update,
)
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
from .ports import RoleRepoPort

__all__ = [
    # Entry points
    "run",
    "run_assign",
    "run_create",
    "run_delete",
    "run_get",
    "run_get_user_role",
    "run_list",
    "run_update",
    # Models
    "AssignRoleInput",
    "AssignRoleOutput",
    "CreateRoleInput",
    "DeleteRoleInput",
    "GetRoleInput",
    "GetUserRoleInput",
    "ListRolesInput",
    "RoleListOutput",
    "RoleOutput",
    "RoleValidationError",
    "UpdateRoleInput",
    # Ports
    "RoleRepoPort",
]
