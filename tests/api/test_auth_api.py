from datetime import UTC, datetime, timedelta

from jellyfin_manager.api.auth_utils import create_access_token
from jellyfin_manager.domain.entities import AppUser

CREDENTIALS = {"username": "admin", "password": "AdminPass1"}


def test_login_sets_cookie(client, admin_user):
    resp = client.post("/api/auth/login", data=CREDENTIALS)

    assert resp.status_code == 200
    assert resp.json()["token_type"] == "bearer"
    assert "access_token" in resp.cookies
    assert "httponly" in resp.headers["set-cookie"].lower()


def test_login_wrong_password(client, admin_user):
    resp = client.post("/api/auth/login", data={**CREDENTIALS, "password": "wrong"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Incorrect username or password"


def test_login_unknown_user(client):
    resp = client.post("/api/auth/login", data={"username": "ghost", "password": "Whatever1"})

    assert resp.status_code == 401


def test_login_disabled_account(client, test_ctx):
    test_ctx.user_repo.save(
        AppUser(
            username="off",
            password_hash=test_ctx.auth_adapter.hash_password("OffPass12"),
            disabled=True,
        )
    )

    resp = client.post("/api/auth/login", data={"username": "off", "password": "OffPass12"})

    assert resp.status_code == 403


def test_login_expired_account(client, test_ctx):
    test_ctx.user_repo.save(
        AppUser(
            username="late",
            password_hash=test_ctx.auth_adapter.hash_password("LatePass1"),
            expires_at=datetime.now(UTC) - timedelta(hours=1),
        )
    )

    resp = client.post("/api/auth/login", data={"username": "late", "password": "LatePass1"})

    assert resp.status_code == 403
    assert resp.json()["detail"] == "User account has expired"


def test_login_rate_limited(client, admin_user, rules):
    for _ in range(rules.rate_limits.login.max_attempts):
        client.post("/api/auth/login", data={**CREDENTIALS, "password": "wrong"})

    resp = client.post("/api/auth/login", data=CREDENTIALS)

    assert resp.status_code == 429


def test_me(admin_client):
    resp = admin_client.get("/api/auth/me")

    assert resp.status_code == 200
    data = resp.json()
    assert data["username"] == "admin"
    assert data["is_admin"] is True
    assert data["roles"] == ["admin"]


def test_me_with_bearer_header(client, admin_user):
    token = create_access_token(data={"sub": str(admin_user.id)})

    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 200


def test_me_requires_auth(client):
    assert client.get("/api/auth/me").status_code == 401


def test_me_rejects_garbage_token(client):
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert resp.status_code == 401


def test_disabled_after_login_is_rejected(admin_client, test_ctx, admin_user):
    admin_user.disabled = True
    test_ctx.user_repo.save(admin_user)

    assert admin_client.get("/api/auth/me").status_code == 403


def test_expired_after_login_is_rejected(member_client, test_ctx, member):
    # Not yet swept: the account is still enabled
    member.expires_at = datetime.now(UTC) - timedelta(minutes=1)
    test_ctx.user_repo.save(member)

    resp = member_client.get("/api/auth/me")

    assert resp.status_code == 403
    assert resp.json()["detail"] == "User account has expired"
    assert test_ctx.user_repo.get_by_id(member.id).disabled is False


def test_future_expiry_still_accepted(member_client, test_ctx, member):
    member.expires_at = datetime.now(UTC) + timedelta(days=1)
    test_ctx.user_repo.save(member)

    assert member_client.get("/api/auth/me").status_code == 200


def test_logout_clears_cookie(admin_client):
    resp = admin_client.post("/api/auth/logout")

    assert resp.status_code == 200
    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith("access_token=")
    assert "Max-Age=0" in set_cookie


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "api"}
