from __future__ import annotations

import logging
from dataclasses import dataclass

from jellyfin_manager.adapters.auth.crypto import JWTAuthAdapter
from jellyfin_manager.adapters.clock import SystemClock
from jellyfin_manager.adapters.jellyfin.client import JellyfinClient
from jellyfin_manager.adapters.sqlite.migrator import SQLiteMigrator
from jellyfin_manager.adapters.sqlite.redemption import SQLiteRedemptionStore
from jellyfin_manager.adapters.sqlite.repos import (
    SQLiteActivityRepo,
    SQLiteInviteRepo,
    SQLiteJellyfinConnectionRepo,
    SQLiteProfileRepo,
    SQLiteRoleRepo,
    SQLiteUserRepo,
)
from jellyfin_manager.app_shell.config import RulesBootstrapConfig, Settings
from jellyfin_manager.components.bootstrap import BootstrapInput, BootstrapOutput, run_bootstrap
from jellyfin_manager.domain.accounts import AccountValidator
from jellyfin_manager.domain.policy import PolicyEngine
from jellyfin_manager.rules.models import JellyfinRules, Rules

logger = logging.getLogger(__name__)


def resolve_media_server(
    connection_repo: SQLiteJellyfinConnectionRepo,
    rules: JellyfinRules,
    fallback_url: str | None = None,
    fallback_api_key: str | None = None,
) -> JellyfinClient | None:
    """Client for the stored connection, else for the configured url and key, else None."""
    connection = connection_repo.get()
    if connection is not None:
        return JellyfinClient(connection.url, connection.access_token, rules)
    if fallback_url and fallback_api_key:
        return JellyfinClient(fallback_url, fallback_api_key, rules)
    return None


@dataclass
class ServiceContext:
    settings: Settings
    rules: Rules
    user_repo: SQLiteUserRepo
    invite_repo: SQLiteInviteRepo
    profile_repo: SQLiteProfileRepo
    role_repo: SQLiteRoleRepo
    activity_repo: SQLiteActivityRepo
    connection_repo: SQLiteJellyfinConnectionRepo
    redemption_store: SQLiteRedemptionStore
    auth_adapter: JWTAuthAdapter
    policy: PolicyEngine
    validator: AccountValidator
    clock: SystemClock

    @classmethod
    def create(cls, settings: Settings, rules: Rules) -> ServiceContext:
        db_path = settings.db_path
        return cls(
            settings=settings,
            rules=rules,
            user_repo=SQLiteUserRepo(db_path),
            invite_repo=SQLiteInviteRepo(db_path),
            profile_repo=SQLiteProfileRepo(db_path),
            role_repo=SQLiteRoleRepo(db_path),
            activity_repo=SQLiteActivityRepo(db_path),
            connection_repo=SQLiteJellyfinConnectionRepo(db_path),
            redemption_store=SQLiteRedemptionStore(
                db_path, lock_timeout=rules.redemption.lock_timeout_seconds
            ),
            auth_adapter=JWTAuthAdapter(),
            policy=PolicyEngine(rules),
            validator=AccountValidator(rules.accounts),
            clock=SystemClock(),
        )

    def migrate(self) -> list[str]:
        return SQLiteMigrator(self.settings.db_path, self.settings.migrations_dir).run_migrations()

    def media_server(self) -> JellyfinClient | None:
        return resolve_media_server(
            self.connection_repo,
            self.rules.jellyfin,
            self.settings.jellyfin_url,
            self.settings.jellyfin_api_key,
        )

    def bootstrap(self) -> BootstrapOutput:
        result = run_bootstrap(
            BootstrapInput(
                username=self.settings.bootstrap_username,
                password=self.settings.bootstrap_password,
            ),
            user_repo=self.user_repo,
            auth_adapter=self.auth_adapter,
            validator=self.validator,
            rules=RulesBootstrapConfig(self.rules),
            time=self.clock,
        )
        if result.skipped_reason:
            logger.info("Bootstrap skipped: %s", result.skipped_reason)
        for err in result.errors:
            logger.error("Bootstrap failed: %s", err.message)
        return result
