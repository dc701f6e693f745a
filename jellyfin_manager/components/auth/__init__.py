"""
Auth component - Authentication and account administration.

Handles dashboard login and admin management of accounts, keeping the
matching Jellyfin users in step.
"""

from .component import (
    run,
    run_create_user,
    run_delete_user,
    run_list_users,
    run_login,
    run_update_user,
)
from .models import (
    AuthOutput,
    CreateUserInput,
    DeleteUserInput,
    ListUsersInput,
    LoginInput,
    UpdateUserInput,
    UserListOutput,
    UserOutput,
)
from .ports import AuthAdapterPort, UserRepoPort

__all__ = [
    # Entry points
    "run",
    "run_create_user",
    "run_delete_user",
    "run_list_users",
    "run_login",
    "run_update_user",
    # Models
    "AuthOutput",
    "CreateUserInput",
    "DeleteUserInput",
    "ListUsersInput",
    "LoginInput",
    "UpdateUserInput",
    "UserListOutput",
    "UserOutput",
    # Ports
    "AuthAdapterPort",
    "UserRepoPort",
]
