import logging
from uuid import UUID, uuid4

from jellyfin_manager.domain.accounts import AccountValidator
from jellyfin_manager.domain.entities import ActivityEntry, AppUser, as_utc
from jellyfin_manager.domain.policy import PolicyEngine

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
from .ports import (
    ActivityLogPort,
    AuthAdapterPort,
    MediaServerPort,
    ProfileLookupPort,
    TimePort,
    UserRepoPort,
)

logger = logging.getLogger(__name__)


def run_login(
    inp: LoginInput, user_repo: UserRepoPort, auth_adapter: AuthAdapterPort, time: TimePort
) -> AuthOutput:
    user = user_repo.get_by_username(inp.username)
    if not user:
        return AuthOutput(success=False, error="Invalid credentials")

    if not auth_adapter.verify_password(inp.password, user.password_hash):
        return AuthOutput(success=False, error="Invalid credentials")

    if user.disabled:
        return AuthOutput(success=False, error="User account is disabled")

    if user.is_expired(time.now_utc()):
        return AuthOutput(success=False, error="User account has expired")

    return AuthOutput(user=user, success=True)


def run_list_users(
    inp: ListUsersInput, user_repo: UserRepoPort, policy: PolicyEngine
) -> UserListOutput:
    if not policy.can_manage_users(inp.actor):
        return UserListOutput(users=[], success=False, error="Access denied")

    return UserListOutput(users=user_repo.list_all(), success=True)


def run_create_user(
    inp: CreateUserInput,
    user_repo: UserRepoPort,
    profile_repo: ProfileLookupPort,
    activity: ActivityLogPort,
    media_server: MediaServerPort | None,
    auth_adapter: AuthAdapterPort,
    validator: AccountValidator,
    policy: PolicyEngine,
    time: TimePort,
) -> UserOutput:
    """
    Create an account directly, without an invite.

    Regular accounts get a Jellyfin user (with the profile's libraries);
    admin accounts only get one when a server is connected.
    """
    if not policy.can_manage_users(inp.actor):
        return UserOutput(success=False, error="Access denied")

    field_errors = validator.validate(inp.username, inp.password, inp.email)
    if field_errors:
        return UserOutput(success=False, error=field_errors[0].message, field=field_errors[0].field)

    if user_repo.get_by_username(inp.username):
        return UserOutput(success=False, error="Username is already taken", field="username")

    profile = None
    if inp.profile_id is not None:
        profile = profile_repo.get_by_id(inp.profile_id)
        if profile is None:
            return UserOutput(success=False, error="Profile not found", field="profile_id")

    if media_server is None and not inp.is_admin:
        return UserOutput(success=False, error="Jellyfin server is not connected")

    now = time.now_utc()
    jellyfin_user_id: str | None = None
    if media_server is not None:
        jellyfin_user_id = media_server.create_user(inp.username, inp.password)

    try:
        if media_server is not None and jellyfin_user_id and profile is not None:
            media_server.set_library_access(jellyfin_user_id, profile.library_access)

        new_user = AppUser(
            id=uuid4(),
            username=inp.username,
            password_hash=auth_adapter.hash_password(inp.password),
            email=inp.email or None,
            is_admin=inp.is_admin,
            jellyfin_user_id=jellyfin_user_id,
            profile_id=profile.id if profile else None,
            notes=inp.notes,
            expires_at=as_utc(inp.expires_at) if inp.expires_at else None,
            disabled=False,
            created_at=now,
            updated_at=now,
        )
        user_repo.save(new_user)
    except Exception:
        if media_server is not None and jellyfin_user_id:
            try:
                media_server.delete_user(jellyfin_user_id)
            except Exception:
                logger.exception("Could not remove Jellyfin user %s", jellyfin_user_id)
        raise

    activity.save(
        ActivityEntry(
            type="account_created",
            message=f"Account {new_user.username} created by {inp.actor.username}",
            timestamp=now,
            username=new_user.username,
            user_id=new_user.id,
            created_by=inp.actor.username,
            metadata={"is_admin": new_user.is_admin},
        )
    )
    logger.info("Account %s created by %s", new_user.username, inp.actor.username)
    return UserOutput(user=new_user, success=True)


def _parse_id(raw: str) -> UUID | None:
    try:
        return UUID(str(raw))
    except (ValueError, TypeError):
        return None


def run_update_user(
    inp: UpdateUserInput,
    user_repo: UserRepoPort,
    activity: ActivityLogPort,
    media_server: MediaServerPort | None,
    policy: PolicyEngine,
    time: TimePort,
) -> UserOutput:
    if not policy.can_manage_users(inp.actor):
        return UserOutput(success=False, error="Access denied")

    uid = _parse_id(inp.target_id)
    if uid is None:
        return UserOutput(success=False, error="Invalid user ID format")

    target = user_repo.get_by_id(uid)
    if not target:
        return UserOutput(success=False, error="User not found")

    # Self-lockout check
    if target.id == inp.actor.id:
        if inp.is_admin is False and target.is_admin:
            return UserOutput(success=False, error="Cannot remove admin role from yourself")
        if inp.disabled:
            return UserOutput(success=False, error="Cannot disable yourself")

    now = time.now_utc()
    new_expiry = target.expires_at
    if inp.clear_expiry:
        new_expiry = None
    elif inp.expires_at is not None:
        new_expiry = as_utc(inp.expires_at)

    reenabling = inp.disabled is False and target.disabled
    if reenabling and new_expiry is not None and new_expiry <= now:
        return UserOutput(
            success=False,
            error="Account has expired, set a new expiry before enabling it",
            field="expires_at",
        )

    status_change = inp.disabled is not None and inp.disabled != target.disabled
    if status_change and target.jellyfin_user_id:
        if media_server is None:
            return UserOutput(success=False, error="Jellyfin server is not connected")
        assert inp.disabled is not None
        media_server.set_disabled(target.jellyfin_user_id, inp.disabled)

    if inp.email is not None:
        target.email = inp.email or None
    if inp.notes is not None:
        target.notes = inp.notes or None
    if inp.is_admin is not None:
        target.is_admin = inp.is_admin
    if inp.disabled is not None:
        target.disabled = inp.disabled
    target.expires_at = new_expiry
    target.updated_at = now
    user_repo.save(target)

    if status_change:
        verb = "disabled" if target.disabled else "enabled"
        activity.save(
            ActivityEntry(
                type="account_disabled" if target.disabled else "account_enabled",
                message=f"Account {target.username} {verb} by {inp.actor.username}",
                timestamp=now,
                username=target.username,
                user_id=target.id,
                created_by=inp.actor.username,
            )
        )

    return UserOutput(user=target, success=True)


def run_delete_user(
    inp: DeleteUserInput,
    user_repo: UserRepoPort,
    activity: ActivityLogPort,
    media_server: MediaServerPort | None,
    policy: PolicyEngine,
    time: TimePort,
) -> UserOutput:
    if not policy.can_manage_users(inp.actor):
        return UserOutput(success=False, error="Access denied")

    uid = _parse_id(inp.target_id)
    if uid is None:
        return UserOutput(success=False, error="Invalid user ID format")

    target = user_repo.get_by_id(uid)
    if not target:
        return UserOutput(success=False, error="User not found")

    if target.id == inp.actor.id:
        return UserOutput(success=False, error="Cannot delete yourself")

    if target.jellyfin_user_id:
        if media_server is None:
            return UserOutput(success=False, error="Jellyfin server is not connected")
        media_server.delete_user(target.jellyfin_user_id)

    user_repo.delete(target.id)
    activity.save(
        ActivityEntry(
            type="account_deleted",
            message=f"Account {target.username} deleted by {inp.actor.username}",
            timestamp=time.now_utc(),
            username=target.username,
            user_id=target.id,
            created_by=inp.actor.username,
        )
    )
    logger.info("Account %s deleted by %s", target.username, inp.actor.username)
    return UserOutput(user=target, success=True)


def run(
    inp: LoginInput | CreateUserInput | UpdateUserInput | DeleteUserInput | ListUsersInput,
    *,
    user_repo: UserRepoPort | None = None,
    profile_repo: ProfileLookupPort | None = None,
    activity: ActivityLogPort | None = None,
    media_server: MediaServerPort | None = None,
    auth_adapter: AuthAdapterPort | None = None,
    validator: AccountValidator | None = None,
    policy: PolicyEngine | None = None,
    time: TimePort | None = None,
) -> AuthOutput | UserOutput | UserListOutput:
    if isinstance(inp, LoginInput):
        assert user_repo and auth_adapter and time
        return run_login(inp, user_repo, auth_adapter, time)

    elif isinstance(inp, CreateUserInput):
        assert user_repo and profile_repo and activity and auth_adapter and validator
        assert policy and time
        return run_create_user(
            inp, user_repo, profile_repo, activity, media_server, auth_adapter, validator,
            policy, time,
        )

    elif isinstance(inp, UpdateUserInput):
        assert user_repo and activity and policy and time
        return run_update_user(inp, user_repo, activity, media_server, policy, time)

    elif isinstance(inp, DeleteUserInput):
        assert user_repo and activity and policy and time
        return run_delete_user(inp, user_repo, activity, media_server, policy, time)

    elif isinstance(inp, ListUsersInput):
        assert user_repo and policy
        return run_list_users(inp, user_repo, policy)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
