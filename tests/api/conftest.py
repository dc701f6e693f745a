import pytest
from fastapi.testclient import TestClient

from jellyfin_manager.api.deps import (
    get_optional_media_server,
    get_provisioning_media_server,
    get_rate_limiter,
    get_settings,
)
from jellyfin_manager.api.main import app
from jellyfin_manager.app_shell.rate_limit import RateLimiter
from jellyfin_manager.domain.entities import AppUser


@pytest.fixture
def limiter(rules) -> RateLimiter:
    return RateLimiter(rules.rate_limits)


@pytest.fixture
def client(test_ctx, media_server, limiter):
    """Client against a migrated temporary database and a fake Jellyfin server."""
    app.dependency_overrides[get_settings] = lambda: test_ctx.settings
    app.dependency_overrides[get_optional_media_server] = lambda: media_server
    app.dependency_overrides[get_provisioning_media_server] = lambda: media_server
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, admin_user):
    resp = client.post("/api/auth/login", data={"username": "admin", "password": "AdminPass1"})
    assert resp.status_code == 200
    return client


@pytest.fixture
def member(test_ctx) -> AppUser:
    user = AppUser(
        username="member",
        password_hash=test_ctx.auth_adapter.hash_password("MemberPass1"),
    )
    return test_ctx.user_repo.save(user)


@pytest.fixture
def member_client(client, member):
    resp = client.post("/api/auth/login", data={"username": "member", "password": "MemberPass1"})
    assert resp.status_code == 200
    return client
