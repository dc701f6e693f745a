"""Bootstrap component implementation.

Creates the first admin account when the system has none and bootstrap is
enabled in the rules.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from jellyfin_manager.domain.accounts import AccountValidator
from jellyfin_manager.domain.entities import AppUser

from .models import BootstrapInput, BootstrapOutput, BootstrapValidationError
from .ports import AuthAdapterPort, RulesPort, TimePort, UserRepoPort

logger = logging.getLogger(__name__)


def _validate_input(
    bootstrap_input: BootstrapInput, validator: AccountValidator
) -> tuple[BootstrapValidationError, ...]:
    assert bootstrap_input.username is not None and bootstrap_input.password is not None
    return tuple(
        BootstrapValidationError(
            code=f"INVALID_{err.field.upper()}", message=err.message, field=err.field
        )
        for err in validator.validate(bootstrap_input.username, bootstrap_input.password)
    )


def run_bootstrap(
    bootstrap_input: BootstrapInput,
    user_repo: UserRepoPort,
    auth_adapter: AuthAdapterPort,
    validator: AccountValidator,
    rules: RulesPort,
    time: TimePort,
) -> BootstrapOutput:
    """Execute the bootstrap process.

    Skips (successfully) when bootstrap is disabled, when any account already
    exists, or when no credentials were supplied. Credentials that break the
    account rules fail the bootstrap.
    """
    bootstrap_config = rules.get_bootstrap_config()
    if not bootstrap_config.enabled_if_no_users:
        return BootstrapOutput.skipped("Bootstrap is not enabled in rules")

    if user_repo.count() > 0:
        return BootstrapOutput.skipped("Users already exist in the system")

    if not bootstrap_input.username or not bootstrap_input.password:
        return BootstrapOutput.skipped(
            "Bootstrap username and/or password not provided. "
            "Set JFM_BOOTSTRAP_USERNAME and JFM_BOOTSTRAP_PASSWORD environment variables."
        )

    validation_errors = _validate_input(bootstrap_input, validator)
    if validation_errors:
        return BootstrapOutput.failed(validation_errors)

    now = time.now_utc()
    admin = AppUser(
        id=uuid4(),
        username=bootstrap_input.username,
        password_hash=auth_adapter.hash_password(bootstrap_input.password),
        is_admin=True,
        notes="Created by bootstrap",
        created_at=now,
        updated_at=now,
    )
    user_repo.save(admin)
    logger.info("Bootstrap admin account %s created", admin.username)
    return BootstrapOutput.created_user(admin)


def run(
    bootstrap_input: BootstrapInput,
    user_repo: UserRepoPort,
    auth_adapter: AuthAdapterPort,
    validator: AccountValidator,
    rules: RulesPort,
    time: TimePort,
) -> BootstrapOutput:
    """Main entry point for the bootstrap component."""
    return run_bootstrap(bootstrap_input, user_repo, auth_adapter, validator, rules, time)
