from functools import lru_cache
from pathlib import Path
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from jellyfin_manager.adapters.auth.crypto import JWTAuthAdapter
from jellyfin_manager.adapters.clock import SystemClock
from jellyfin_manager.adapters.jellyfin.client import JellyfinClient
from jellyfin_manager.adapters.sqlite.redemption import SQLiteRedemptionStore
from jellyfin_manager.adapters.sqlite.repos import (
    SQLiteActivityRepo,
    SQLiteInviteRepo,
    SQLiteJellyfinConnectionRepo,
    SQLiteProfileRepo,
    SQLiteRoleRepo,
    SQLiteUserRepo,
)
from jellyfin_manager.api.auth_utils import decode_access_token
from jellyfin_manager.app_shell.config import Settings
from jellyfin_manager.app_shell.context import resolve_media_server
from jellyfin_manager.app_shell.rate_limit import RateLimiter
from jellyfin_manager.domain.accounts import AccountValidator
from jellyfin_manager.domain.entities import AppUser
from jellyfin_manager.domain.policy import PolicyEngine
from jellyfin_manager.rules.loader import load_rules
from jellyfin_manager.rules.models import Rules


# --- Settings ---
@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return _load_rules_cached(str(settings.rules_path))


@lru_cache
def _load_rules_cached(path: str) -> Rules:
    return load_rules(Path(path))


# --- Repos ---
def get_user_repo(settings: Settings = Depends(get_settings)) -> SQLiteUserRepo:
    return SQLiteUserRepo(settings.db_path)


def get_invite_repo(settings: Settings = Depends(get_settings)) -> SQLiteInviteRepo:
    return SQLiteInviteRepo(settings.db_path)


def get_profile_repo(settings: Settings = Depends(get_settings)) -> SQLiteProfileRepo:
    return SQLiteProfileRepo(settings.db_path)


def get_role_repo(settings: Settings = Depends(get_settings)) -> SQLiteRoleRepo:
    return SQLiteRoleRepo(settings.db_path)


def get_activity_repo(settings: Settings = Depends(get_settings)) -> SQLiteActivityRepo:
    return SQLiteActivityRepo(settings.db_path)


def get_connection_repo(
    settings: Settings = Depends(get_settings),
) -> SQLiteJellyfinConnectionRepo:
    return SQLiteJellyfinConnectionRepo(settings.db_path)


def get_redemption_store(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
) -> SQLiteRedemptionStore:
    return SQLiteRedemptionStore(
        settings.db_path, lock_timeout=rules.redemption.lock_timeout_seconds
    )


# --- Services ---
def get_policy(rules: Rules = Depends(get_rules)) -> PolicyEngine:
    return PolicyEngine(rules)


def get_account_validator(rules: Rules = Depends(get_rules)) -> AccountValidator:
    return AccountValidator(rules.accounts)


# --- Jellyfin ---
def get_optional_media_server(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
    connection_repo: SQLiteJellyfinConnectionRepo = Depends(get_connection_repo),
) -> JellyfinClient | None:
    return resolve_media_server(
        connection_repo, rules.jellyfin, settings.jellyfin_url, settings.jellyfin_api_key
    )


def get_provisioning_media_server(
    settings: Settings = Depends(get_settings),
    rules: Rules = Depends(get_rules),
    connection_repo: SQLiteJellyfinConnectionRepo = Depends(get_connection_repo),
) -> JellyfinClient | None:
    """Client for redemption, which calls Jellyfin while holding the write lock."""
    jellyfin_rules = rules.jellyfin.model_copy(
        update={"request_timeout_seconds": rules.redemption.jellyfin_timeout_seconds}
    )
    return resolve_media_server(
        connection_repo, jellyfin_rules, settings.jellyfin_url, settings.jellyfin_api_key
    )


def get_media_server(
    media_server: JellyfinClient | None = Depends(get_optional_media_server),
) -> JellyfinClient:
    if media_server is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Jellyfin server is not connected",
        )
    return media_server


# Time adapter for deterministic time operations
_clock_instance: SystemClock | None = None


def get_clock() -> SystemClock:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


# --- Auth ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    clock: SystemClock = Depends(get_clock),
) -> AppUser:
    # Cookie first (HttpOnly), then the bearer header
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        token = cookie_token.split(" ", 1)[1]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if user_id is None or not isinstance(user_id, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    try:
        uid = UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload"
        ) from None

    user = user_repo.get_by_id(uid)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if user.disabled:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user",
        )

    # Tokens outlive the account; the sweep may not have disabled it yet
    if user.is_expired(clock.now_utc()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account has expired",
        )

    return user


async def get_current_admin(current_user: AppUser = Depends(get_current_user)) -> AppUser:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return current_user


def get_auth_adapter() -> JWTAuthAdapter:
    return JWTAuthAdapter()


_rate_limiter_instance: RateLimiter | None = None


def get_rate_limiter(rules: Rules = Depends(get_rules)) -> RateLimiter:
    """Process-wide limiter; history is shared between requests."""
    global _rate_limiter_instance
    if _rate_limiter_instance is None:
        _rate_limiter_instance = RateLimiter(rules.rate_limits)
    return _rate_limiter_instance


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
