"""Bootstrap component port definitions."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from jellyfin_manager.domain.entities import AppUser
from jellyfin_manager.rules.models import AdminBootstrapRules


class UserRepoPort(Protocol):
    def count(self) -> int:
        """Number of accounts in the system."""
        ...

    def save(self, user: AppUser) -> AppUser: ...


class AuthAdapterPort(Protocol):
    def hash_password(self, password: str) -> str: ...


class RulesPort(Protocol):
    def get_bootstrap_config(self) -> AdminBootstrapRules: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime: ...
