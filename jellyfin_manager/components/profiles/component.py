"""
Profiles component - reusable library access templates.

A profile is applied to accounts created from an invite. Its library list
is either given explicitly or copied from an existing Jellyfin user.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from jellyfin_manager.domain.entities import ActivityEntry, Profile
from jellyfin_manager.domain.policy import PolicyEngine

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
from .ports import ActivityLogPort, MediaServerPort, ProfileRepoPort, TimePort

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100


def _validate_name(
    name: str, repo: ProfileRepoPort, current: Profile | None = None
) -> ProfileValidationError | None:
    if not name:
        return ProfileValidationError("NAME_REQUIRED", "Profile name is required", "name")
    if len(name) > MAX_NAME_LENGTH:
        return ProfileValidationError(
            "NAME_TOO_LONG", f"Profile name must be at most {MAX_NAME_LENGTH} characters", "name"
        )
    existing = repo.get_by_name(name)
    if existing is not None and (current is None or existing.id != current.id):
        return ProfileValidationError(
            "NAME_TAKEN", "A profile with this name already exists", "name"
        )
    return None


def _copy_from_source(
    source_user_id: str, media_server: MediaServerPort | None
) -> tuple[list[str], str | None]:
    """Library ids and display name of the Jellyfin user a profile is modelled on."""
    if media_server is None:
        raise LookupError("Jellyfin server is not connected")

    source_name = None
    for user in media_server.list_users():
        if str(user.get("Id")) == source_user_id:
            source_name = user.get("Name")
            break
    else:
        raise LookupError("Source user not found on the Jellyfin server")

    return media_server.get_library_access(source_user_id), source_name


def run_list(
    inp: ListProfilesInput, repo: ProfileRepoPort, policy: PolicyEngine
) -> ProfileListOutput:
    if not policy.can_manage_profiles(inp.actor):
        return ProfileListOutput(profiles=[], success=False, error="Access denied")
    return ProfileListOutput(profiles=repo.list_all(), success=True)


def run_get(inp: GetProfileInput, repo: ProfileRepoPort, policy: PolicyEngine) -> ProfileOutput:
    if not policy.can_manage_profiles(inp.actor):
        return ProfileOutput(success=False, error="Access denied")
    profile = repo.get_by_id(inp.profile_id)
    if profile is None:
        return ProfileOutput(success=False, error="Profile not found")
    return ProfileOutput(profile=profile, success=True)


def run_create(
    inp: CreateProfileInput,
    repo: ProfileRepoPort,
    media_server: MediaServerPort | None,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    time: TimePort,
) -> ProfileOutput:
    if not policy.can_manage_profiles(inp.actor):
        return ProfileOutput(success=False, error="Access denied")

    name = inp.name.strip()
    name_error = _validate_name(name, repo)
    if name_error:
        return ProfileOutput(success=False, error=name_error.message, errors=[name_error])

    library_access = list(inp.library_access) if inp.library_access is not None else []
    source_name = None
    if inp.source_user_id:
        try:
            copied, source_name = _copy_from_source(inp.source_user_id, media_server)
        except LookupError as e:
            err = ProfileValidationError("SOURCE_UNAVAILABLE", str(e), "source_user_id")
            return ProfileOutput(success=False, error=err.message, errors=[err])
        if inp.library_access is None:
            library_access = copied

    now = time.now_utc()
    profile = Profile(
        id=uuid4(),
        name=name,
        source_user_id=inp.source_user_id,
        source_name=source_name,
        is_default=inp.is_default,
        library_access=library_access,
        created_at=now,
        updated_at=now,
    )
    repo.save(profile)

    activity.save(
        ActivityEntry(
            type="profile_created",
            message=f"Profile '{profile.name}' created by {inp.actor.username}",
            timestamp=now,
            created_by=inp.actor.username,
            metadata={"profile_id": str(profile.id), "libraries": len(library_access)},
        )
    )
    logger.info("Profile %s created with %d libraries", profile.name, len(library_access))
    return ProfileOutput(profile=profile, success=True)


def run_update(
    inp: UpdateProfileInput,
    repo: ProfileRepoPort,
    media_server: MediaServerPort | None,
    policy: PolicyEngine,
    time: TimePort,
) -> ProfileOutput:
    if not policy.can_manage_profiles(inp.actor):
        return ProfileOutput(success=False, error="Access denied")

    profile = repo.get_by_id(inp.profile_id)
    if profile is None:
        return ProfileOutput(success=False, error="Profile not found")

    if inp.name is not None:
        name = inp.name.strip()
        name_error = _validate_name(name, repo, current=profile)
        if name_error:
            return ProfileOutput(success=False, error=name_error.message, errors=[name_error])
        profile.name = name

    if inp.source_user_id and inp.source_user_id != profile.source_user_id:
        try:
            copied, source_name = _copy_from_source(inp.source_user_id, media_server)
        except LookupError as e:
            err = ProfileValidationError("SOURCE_UNAVAILABLE", str(e), "source_user_id")
            return ProfileOutput(success=False, error=err.message, errors=[err])
        profile.source_user_id = inp.source_user_id
        profile.source_name = source_name
        if inp.library_access is None:
            profile.library_access = copied

    if inp.library_access is not None:
        profile.library_access = list(inp.library_access)
    if inp.is_default is not None:
        profile.is_default = inp.is_default

    profile.updated_at = time.now_utc()
    repo.save(profile)
    return ProfileOutput(profile=profile, success=True)


def run_delete(
    inp: DeleteProfileInput,
    repo: ProfileRepoPort,
    activity: ActivityLogPort,
    policy: PolicyEngine,
    time: TimePort,
) -> ProfileOutput:
    """Delete a profile. Invites and accounts that used it are left without one."""
    if not policy.can_manage_profiles(inp.actor):
        return ProfileOutput(success=False, error="Access denied")

    profile = repo.get_by_id(inp.profile_id)
    if profile is None or not repo.delete(profile.id):
        return ProfileOutput(success=False, error="Profile not found")

    activity.save(
        ActivityEntry(
            type="profile_deleted",
            message=f"Profile '{profile.name}' deleted by {inp.actor.username}",
            timestamp=time.now_utc(),
            created_by=inp.actor.username,
            metadata={"profile_id": str(profile.id)},
        )
    )
    return ProfileOutput(profile=profile, success=True)


def run(
    inp: (
        ListProfilesInput
        | GetProfileInput
        | CreateProfileInput
        | UpdateProfileInput
        | DeleteProfileInput
    ),
    *,
    repo: ProfileRepoPort,
    policy: PolicyEngine,
    media_server: MediaServerPort | None = None,
    activity: ActivityLogPort | None = None,
    time: TimePort | None = None,
) -> ProfileOutput | ProfileListOutput:
    if isinstance(inp, ListProfilesInput):
        return run_list(inp, repo, policy)

    elif isinstance(inp, GetProfileInput):
        return run_get(inp, repo, policy)

    elif isinstance(inp, CreateProfileInput):
        assert activity and time
        return run_create(inp, repo, media_server, activity, policy, time)

    elif isinstance(inp, UpdateProfileInput):
        assert time
        return run_update(inp, repo, media_server, policy, time)

    elif isinstance(inp, DeleteProfileInput):
        assert activity and time
        return run_delete(inp, repo, activity, policy, time)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
