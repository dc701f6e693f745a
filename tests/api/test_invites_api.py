"""
Invite API: admin management, the public lookup, and redemption over HTTP.
"""

import sqlite3
from datetime import UTC, datetime, timedelta

import pytest

from jellyfin_manager.api.deps import get_provisioning_media_server, get_rate_limiter
from jellyfin_manager.api.main import app
from jellyfin_manager.app_shell.rate_limit import RateLimiter
from jellyfin_manager.domain.entities import Invite, JellyfinConnection, Profile
from jellyfin_manager.rules.models import RateLimitRules, RateLimitWindow

ACCOUNT = {"username": "alice", "password": "Secret123"}


@pytest.fixture
def invite(test_ctx) -> Invite:
    return test_ctx.invite_repo.create(Invite(code="abc123", label="Happy Tiger", max_uses=1))


class TestAdminInvites:
    def test_create_requires_login(self, client):
        resp = client.post("/api/invites", json={})
        assert resp.status_code == 401

    def test_member_cannot_create(self, member_client):
        resp = member_client.post("/api/invites", json={})
        assert resp.status_code == 403

    def test_create(self, admin_client):
        resp = admin_client.post(
            "/api/invites",
            json={"max_uses": 3, "user_expiry_enabled": True, "user_expiry_days": 30},
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "active"
        assert data["uses_remaining"] == 3
        assert data["used_count"] == 0
        assert data["created_by"] == "admin"
        assert data["label"]
        assert len(data["code"]) >= 16

    def test_create_attaches_default_profile(self, admin_client, test_ctx):
        profile = test_ctx.profile_repo.save(Profile(name="Standard", is_default=True))

        resp = admin_client.post("/api/invites", json={})

        assert resp.json()["profile_id"] == str(profile.id)

    def test_create_rejects_zero_uses(self, admin_client):
        resp = admin_client.post("/api/invites", json={"max_uses": 0})

        assert resp.status_code == 400
        assert "Max uses" in resp.json()["detail"]

    def test_create_rejects_past_expiry(self, admin_client):
        past = (datetime.now(UTC) - timedelta(days=1)).isoformat()

        resp = admin_client.post("/api/invites", json={"expires_at": past})

        assert resp.status_code == 400

    def test_list_shows_status(self, admin_client, test_ctx):
        past = datetime.now(UTC) - timedelta(days=1)
        test_ctx.invite_repo.create(Invite(code="open"))
        test_ctx.invite_repo.create(Invite(code="old", expires_at=past))
        test_ctx.invite_repo.create(Invite(code="full", max_uses=1, used_count=1))

        resp = admin_client.get("/api/invites")

        assert resp.status_code == 200
        statuses = {i["code"]: i["status"] for i in resp.json()}
        assert statuses == {"open": "active", "old": "expired", "full": "exhausted"}

    def test_delete(self, admin_client, invite, test_ctx):
        resp = admin_client.delete(f"/api/invites/{invite.id}")

        assert resp.status_code == 200
        assert test_ctx.invite_repo.get_by_code("abc123") is None

    def test_delete_unknown(self, admin_client, invite, test_ctx):
        test_ctx.invite_repo.delete(invite.id)

        resp = admin_client.delete(f"/api/invites/{invite.id}")

        assert resp.status_code == 404


class TestLookup:
    def test_public_lookup(self, client, invite):
        resp = client.get("/api/invites/by-code/abc123")

        assert resp.status_code == 200
        data = resp.json()
        assert data["usable"] is True
        assert data["status"] == "active"
        assert data["uses_remaining"] == 1
        assert data["label"] == "Happy Tiger"

    def test_unknown_code(self, client):
        resp = client.get("/api/invites/by-code/nope")

        assert resp.status_code == 404
        assert resp.json() == {"message": "Invite not found", "kind": "InviteNotFound"}

    def test_lookup_shows_account_expiry(self, client, test_ctx):
        test_ctx.invite_repo.create(
            Invite(code="timed", user_expiry_enabled=True, user_expiry_days=7)
        )

        data = client.get("/api/invites/by-code/timed").json()

        assert data["user_expiry_enabled"] is True
        assert data["user_expiry_days"] == 7
        expires = datetime.fromisoformat(data["account_expires_at"])
        assert timedelta(days=6) < expires - datetime.now(UTC) <= timedelta(days=7)


class TestRedeem:
    def test_use_creates_account(self, client, invite, media_server, test_ctx):
        resp = client.post("/api/invites/use/abc123", json=ACCOUNT)

        assert resp.status_code == 201
        assert resp.json()["username"] == "alice"
        assert media_server.names == ["alice"]
        assert test_ctx.invite_repo.get_by_code("abc123").used_count == 1
        user = test_ctx.user_repo.get_by_username("alice")
        assert user.invite_code == "abc123"
        assert test_ctx.auth_adapter.verify_password("Secret123", user.password_hash)

    def test_redeem_with_code_in_body(self, client, invite):
        resp = client.post("/api/invites/redeem", json={**ACCOUNT, "code": "abc123"})

        assert resp.status_code == 201

    def test_redeemed_account_can_log_in(self, client, invite):
        client.post("/api/invites/use/abc123", json=ACCOUNT)

        resp = client.post("/api/auth/login", data=ACCOUNT)

        assert resp.status_code == 200

    def test_unknown_code(self, client):
        resp = client.post("/api/invites/use/nope", json=ACCOUNT)

        assert resp.status_code == 404
        assert resp.json()["kind"] == "InviteNotFound"

    def test_expired(self, client, test_ctx, media_server):
        past = datetime.now(UTC) - timedelta(minutes=1)
        test_ctx.invite_repo.create(Invite(code="old", expires_at=past))

        resp = client.post("/api/invites/use/old", json=ACCOUNT)

        assert resp.status_code == 410
        assert resp.json()["kind"] == "InviteExpired"
        assert media_server.users == {}

    def test_exhausted(self, client, invite):
        client.post("/api/invites/use/abc123", json=ACCOUNT)

        resp = client.post("/api/invites/use/abc123", json={**ACCOUNT, "username": "bob"})

        assert resp.status_code == 409
        assert resp.json() == {
            "message": "This invite has reached its maximum uses",
            "kind": "InviteExhausted",
        }

    def test_invalid_password(self, client, invite, test_ctx):
        resp = client.post("/api/invites/use/abc123", json={**ACCOUNT, "password": "short"})

        assert resp.status_code == 422
        body = resp.json()
        assert body["kind"] == "InvalidAccountInput"
        assert body["field"] == "password"
        assert test_ctx.invite_repo.get_by_code("abc123").used_count == 0

    def test_username_taken(self, client, test_ctx, admin_user):
        test_ctx.invite_repo.create(Invite(code="multi", max_uses=5))

        resp = client.post("/api/invites/use/multi", json={**ACCOUNT, "username": "ADMIN"})

        assert resp.status_code == 422
        assert resp.json()["field"] == "username"

    def test_malformed_duration(self, client, test_ctx):
        test_ctx.invite_repo.create(
            Invite(code="broken", user_expiry_enabled=True, user_expiry_days=-1)
        )

        resp = client.post("/api/invites/use/broken", json=ACCOUNT)

        assert resp.status_code == 500
        assert resp.json()["kind"] == "InvalidDuration"
        assert "-1" not in resp.json()["message"]

    def test_provisioning_failure(self, client, invite, media_server, test_ctx):
        media_server.fail_create = True

        resp = client.post("/api/invites/use/abc123", json=ACCOUNT)

        assert resp.status_code == 502
        assert resp.json()["kind"] == "ProvisioningFailed"
        assert test_ctx.invite_repo.get_by_code("abc123").used_count == 0
        assert test_ctx.user_repo.count() == 0

    def test_no_server_connected(self, client, invite, test_ctx):
        app.dependency_overrides[get_provisioning_media_server] = lambda: None

        resp = client.post("/api/invites/use/abc123", json=ACCOUNT)

        assert resp.status_code == 503
        assert resp.json()["kind"] == "ProvisioningFailed"
        assert test_ctx.invite_repo.get_by_code("abc123").used_count == 0

    def test_rate_limited(self, client, invite, rules):
        strict = RateLimiter(
            RateLimitRules(
                login=rules.rate_limits.login,
                redeem=RateLimitWindow(window_seconds=300, max_requests=2),
            )
        )
        app.dependency_overrides[get_rate_limiter] = lambda: strict

        for _ in range(2):
            client.post("/api/invites/use/nope", json=ACCOUNT)
        resp = client.post("/api/invites/use/abc123", json=ACCOUNT)

        assert resp.status_code == 429
        assert resp.json()["kind"] == "RateLimited"


class TestStoredFractionalDuration:
    """A duration edited outside the app is reported, never crashes a request."""

    @pytest.fixture
    def fractional(self, test_ctx):
        test_ctx.invite_repo.create(
            Invite(code="frac", user_expiry_enabled=True, user_expiry_days=1)
        )
        conn = sqlite3.connect(test_ctx.settings.db_path)
        conn.execute("UPDATE invites SET user_expiry_days = 1.5 WHERE code = 'frac'")
        conn.commit()
        conn.close()

    def test_list_marks_invalid(self, admin_client, fractional):
        resp = admin_client.get("/api/invites")

        assert resp.status_code == 200
        assert resp.json()[0]["status"] == "invalid"
        assert resp.json()[0]["user_expiry_days"] == 1.5

    def test_lookup(self, client, fractional):
        resp = client.get("/api/invites/by-code/frac")

        assert resp.status_code == 500
        assert resp.json()["kind"] == "InvalidDuration"

    def test_redeem(self, client, fractional, media_server, test_ctx):
        resp = client.post("/api/invites/use/frac", json=ACCOUNT)

        assert resp.status_code == 500
        assert resp.json()["kind"] == "InvalidDuration"
        assert media_server.users == {}
        assert test_ctx.invite_repo.get_by_code("frac").used_count == 0


class TestProvisioningClient:
    def test_uses_the_redemption_timeout(self, test_ctx, rules):
        test_ctx.connection_repo.save(JellyfinConnection(url="http://jf", access_token="t"))

        client = get_provisioning_media_server(test_ctx.settings, rules, test_ctx.connection_repo)

        assert client is not None
        assert client.rules.request_timeout_seconds == rules.redemption.jellyfin_timeout_seconds
        assert rules.redemption.jellyfin_timeout_seconds < rules.jellyfin.request_timeout_seconds
        # The shared rules are left alone
        assert rules.jellyfin.request_timeout_seconds == 10.0

    def test_none_without_a_server(self, test_ctx, rules):
        test_ctx.settings.jellyfin_url = None

        client = get_provisioning_media_server(test_ctx.settings, rules, test_ctx.connection_repo)

        assert client is None
