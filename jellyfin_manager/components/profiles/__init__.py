"""
Profiles component - Library access profiles.
"""

from .component import run, run_create, run_delete, run_get, run_list, run_update
from .models import (
    CreateProfileInput,
    DeleteProfileInput,
    GetProfileInput,
    ListProfilesInput,
    ProfileListOutput,
    ProfileOutput,
    ProfileValidationError,
    UpdateProfileInput,
)
from .ports import ProfileRepoPort

__all__ = [
    # Entry points
    "run",
    "run_create",
    "run_delete",
    "run_get",
    "run_list",
    "run_update",
    # Models
    "CreateProfileInput",
    "DeleteProfileInput",
    "GetProfileInput",
    "ListProfilesInput",
    "ProfileListOutput",
    "ProfileOutput",
    "ProfileValidationError",
    "UpdateProfileInput",
    # Ports
    "ProfileRepoPort",
]
