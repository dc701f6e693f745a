"""Bootstrap component data models."""

from __future__ import annotations

from dataclasses import dataclass

from jellyfin_manager.domain.entities import AppUser


@dataclass(frozen=True)
class BootstrapInput:
    """Credentials for the first admin account, usually read from the environment."""

    username: str | None
    password: str | None


@dataclass(frozen=True)
class BootstrapValidationError:
    code: str
    message: str
    field: str


@dataclass(frozen=True)
class BootstrapOutput:
    user: AppUser | None
    created: bool
    skipped_reason: str | None
    errors: tuple[BootstrapValidationError, ...]
    success: bool

    @classmethod
    def skipped(cls, reason: str) -> BootstrapOutput:
        return cls(user=None, created=False, skipped_reason=reason, errors=(), success=True)

    @classmethod
    def created_user(cls, user: AppUser) -> BootstrapOutput:
        return cls(user=user, created=True, skipped_reason=None, errors=(), success=True)

    @classmethod
    def failed(cls, errors: tuple[BootstrapValidationError, ...]) -> BootstrapOutput:
        return cls(user=None, created=False, skipped_reason=None, errors=errors, success=False)
