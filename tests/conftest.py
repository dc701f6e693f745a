import itertools
import threading
from typing import Any

import pytest

from jellyfin_manager.adapters.sqlite.migrator import SQLiteMigrator
from jellyfin_manager.app_shell.config import DEFAULT_RULES_PATH, MIGRATIONS_DIR, Settings
from jellyfin_manager.app_shell.context import ServiceContext
from jellyfin_manager.domain.entities import AppUser
from jellyfin_manager.rules.loader import load_rules

_JFM_ENV = (
    "JFM_RULES_PATH",
    "JFM_JELLYFIN_URL",
    "JFM_JELLYFIN_API_KEY",
    "JFM_BOOTSTRAP_USERNAME",
    "JFM_BOOTSTRAP_PASSWORD",
)


class FakeMediaServer:
    """In-memory Jellyfin double. Safe to share between threads."""

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.deleted: list[str] = []
        self.libraries = [
            {"Id": "lib-movies", "Name": "Movies", "CollectionType": "movies"},
            {"Id": "lib-shows", "Name": "Shows", "CollectionType": "tvshows"},
        ]
        # Per-user server data keyed by Jellyfin user id
        self.activity: dict[str, list[dict[str, Any]]] = {}
        self.played: dict[str, list[dict[str, Any]]] = {}
        self.favorites: dict[str, list[dict[str, Any]]] = {}
        self.fail_create = False
        self.fail_library_access = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create_user(self, username: str, password: str) -> str:
        if self.fail_create:
            raise RuntimeError("Jellyfin rejected the user")
        with self._lock:
            user_id = f"jf-{next(self._ids)}"
            self.users[user_id] = {
                "Id": user_id,
                "Name": username,
                "Policy": {"IsAdministrator": False, "IsDisabled": False, "EnabledFolders": []},
            }
        return user_id

    def delete_user(self, user_id: str) -> None:
        with self._lock:
            self.deleted.append(user_id)
            self.users.pop(user_id, None)

    def set_library_access(self, user_id: str, library_ids: list[str]) -> None:
        if self.fail_library_access:
            raise RuntimeError("policy update failed")
        self.users[user_id]["Policy"]["EnabledFolders"] = list(library_ids)

    def get_library_access(self, user_id: str) -> list[str]:
        return list(self.users[user_id]["Policy"]["EnabledFolders"])

    def set_disabled(self, user_id: str, disabled: bool) -> None:
        self.users[user_id]["Policy"]["IsDisabled"] = disabled

    def list_library_folders(self) -> list[dict[str, Any]]:
        return list(self.libraries)

    def list_users(self) -> list[dict[str, Any]]:
        return list(self.users.values())

    def get_activity_log(self, user_id: str, limit: int = 10) -> tuple[list[dict[str, Any]], int]:
        entries = self.activity.get(user_id, [])
        return entries[:limit], len(entries)

    def get_watch_time(self, user_id: str) -> tuple[int, int]:
        items = self.played.get(user_id, [])
        ticks = sum(item.get("RunTimeTicks", 0) for item in items)
        return ticks // (10_000_000 * 60), len(items)

    def get_favorites(self, user_id: str, limit: int = 20) -> tuple[list[dict[str, Any]], int]:
        items = self.favorites.get(user_id, [])
        return items[:limit], len(items)

    @property
    def names(self) -> list[str]:
        return sorted(u["Name"] for u in self.users.values())


class PlainHasher:
    """Stands in for argon2 where hashing cost would only slow tests down."""

    def hash_password(self, plain: str) -> str:
        return f"hashed_{plain}"

    def verify_password(self, plain: str, hashed: str) -> bool:
        return hashed == f"hashed_{plain}"


@pytest.fixture
def rules():
    return load_rules(DEFAULT_RULES_PATH)


@pytest.fixture
def migrations_dir() -> str:
    return str(MIGRATIONS_DIR)


@pytest.fixture
def db_path(tmp_path, migrations_dir) -> str:
    """A migrated, empty database."""
    path = str(tmp_path / "jfm.db")
    SQLiteMigrator(path, migrations_dir).run_migrations()
    return path


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("JFM_DATA_DIR", str(tmp_path))
    for name in _JFM_ENV:
        monkeypatch.delenv(name, raising=False)
    return Settings()


@pytest.fixture
def test_ctx(settings, rules) -> ServiceContext:
    """A full ServiceContext on a temporary, migrated database."""
    ctx = ServiceContext.create(settings, rules)
    ctx.migrate()
    return ctx


@pytest.fixture
def media_server() -> FakeMediaServer:
    return FakeMediaServer()


@pytest.fixture
def hasher() -> PlainHasher:
    return PlainHasher()


@pytest.fixture
def admin_user(test_ctx) -> AppUser:
    user = AppUser(
        username="admin",
        password_hash=test_ctx.auth_adapter.hash_password("AdminPass1"),
        is_admin=True,
    )
    return test_ctx.user_repo.save(user)
