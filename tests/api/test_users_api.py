from datetime import UTC, datetime, timedelta

from jellyfin_manager.api.deps import get_optional_media_server
from jellyfin_manager.api.main import app
from jellyfin_manager.domain.entities import AppUser, Profile

NEW_USER = {"username": "carol", "password": "CarolPass1"}


def _jellyfin_user(test_ctx, media_server, username: str) -> AppUser:
    jf_id = media_server.create_user(username, "x")
    return test_ctx.user_repo.save(
        AppUser(username=username, password_hash="h", jellyfin_user_id=jf_id)
    )


class TestListUsers:
    def test_admin_lists_without_hashes(self, admin_client, admin_user):
        resp = admin_client.get("/api/users")

        assert resp.status_code == 200
        users = resp.json()
        assert [u["username"] for u in users] == ["admin"]
        assert "password_hash" not in users[0]

    def test_member_denied(self, member_client):
        assert member_client.get("/api/users").status_code == 403

    def test_anonymous_denied(self, client):
        assert client.get("/api/users").status_code == 401


class TestCreateUser:
    def test_creates_jellyfin_user(self, admin_client, media_server, test_ctx):
        resp = admin_client.post("/api/users", json=NEW_USER)

        assert resp.status_code == 201
        data = resp.json()
        assert data["username"] == "carol"
        assert data["jellyfin_user_id"] in media_server.users
        entries, _ = test_ctx.activity_repo.query({"type": "account_created"})
        assert [e.username for e in entries] == ["carol"]

    def test_applies_profile_libraries(self, admin_client, media_server, test_ctx):
        profile = test_ctx.profile_repo.save(Profile(name="Kids", library_access=["lib-shows"]))

        resp = admin_client.post("/api/users", json={**NEW_USER, "profile_id": str(profile.id)})

        jf_id = resp.json()["jellyfin_user_id"]
        assert media_server.get_library_access(jf_id) == ["lib-shows"]

    def test_duplicate_username(self, admin_client):
        admin_client.post("/api/users", json=NEW_USER)

        resp = admin_client.post("/api/users", json={**NEW_USER, "username": "CAROL"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Username is already taken"

    def test_weak_password(self, admin_client, media_server):
        resp = admin_client.post("/api/users", json={**NEW_USER, "password": "weak"})

        assert resp.status_code == 400
        assert media_server.users == {}

    def test_regular_account_needs_server(self, admin_client):
        app.dependency_overrides[get_optional_media_server] = lambda: None

        resp = admin_client.post("/api/users", json=NEW_USER)

        assert resp.status_code == 503

    def test_admin_account_without_server(self, admin_client, test_ctx):
        app.dependency_overrides[get_optional_media_server] = lambda: None

        resp = admin_client.post("/api/users", json={**NEW_USER, "is_admin": True})

        assert resp.status_code == 201
        assert resp.json()["jellyfin_user_id"] is None


class TestUpdateUser:
    def test_disable_mirrors_to_jellyfin(self, admin_client, media_server, test_ctx):
        user = _jellyfin_user(test_ctx, media_server, "dave")

        resp = admin_client.put(f"/api/users/{user.id}", json={"disabled": True})

        assert resp.status_code == 200
        assert resp.json()["disabled"] is True
        assert media_server.users[user.jellyfin_user_id]["Policy"]["IsDisabled"] is True
        entries, _ = test_ctx.activity_repo.query({"type": "account_disabled"})
        assert len(entries) == 1

    def test_cannot_disable_self(self, admin_client, admin_user):
        resp = admin_client.put(f"/api/users/{admin_user.id}", json={"disabled": True})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Cannot disable yourself"

    def test_expired_account_needs_new_expiry(self, admin_client, media_server, test_ctx):
        user = _jellyfin_user(test_ctx, media_server, "erin")
        user.disabled = True
        user.expires_at = datetime.now(UTC) - timedelta(days=1)
        test_ctx.user_repo.save(user)

        refused = admin_client.put(f"/api/users/{user.id}", json={"disabled": False})
        later = (datetime.now(UTC) + timedelta(days=30)).isoformat()
        allowed = admin_client.put(
            f"/api/users/{user.id}", json={"disabled": False, "expires_at": later}
        )

        assert refused.status_code == 400
        assert allowed.status_code == 200
        assert allowed.json()["disabled"] is False

    def test_clear_expiry(self, admin_client, test_ctx):
        user = test_ctx.user_repo.save(
            AppUser(
                username="frank",
                password_hash="h",
                expires_at=datetime.now(UTC) + timedelta(days=1),
            )
        )

        resp = admin_client.put(f"/api/users/{user.id}", json={"clear_expiry": True})

        assert resp.json()["expires_at"] is None

    def test_bad_id(self, admin_client):
        assert admin_client.put("/api/users/not-a-uuid", json={}).status_code == 400

    def test_unknown_id(self, admin_client):
        resp = admin_client.put(
            "/api/users/00000000-0000-0000-0000-000000000000", json={}
        )
        assert resp.status_code == 404


class TestDeleteUser:
    def test_delete_removes_jellyfin_user(self, admin_client, media_server, test_ctx):
        user = _jellyfin_user(test_ctx, media_server, "gina")

        resp = admin_client.delete(f"/api/users/{user.id}")

        assert resp.status_code == 200
        assert media_server.deleted == [user.jellyfin_user_id]
        assert test_ctx.user_repo.get_by_id(user.id) is None

    def test_cannot_delete_self(self, admin_client, admin_user):
        assert admin_client.delete(f"/api/users/{admin_user.id}").status_code == 400


class TestExpiry:
    def test_expire_disables_overdue_accounts(self, admin_client, media_server, test_ctx):
        overdue = _jellyfin_user(test_ctx, media_server, "henry")
        overdue.expires_at = datetime.now(UTC) - timedelta(minutes=5)
        test_ctx.user_repo.save(overdue)
        _jellyfin_user(test_ctx, media_server, "iris")

        resp = admin_client.post("/api/users/expire")

        assert resp.status_code == 200
        body = resp.json()
        assert [u["username"] for u in body["disabled"]] == ["henry"]
        assert body["failures"] == []
        assert media_server.users[overdue.jellyfin_user_id]["Policy"]["IsDisabled"] is True

    def test_member_cannot_expire(self, member_client):
        assert member_client.post("/api/users/expire").status_code == 403


class TestUserActivity:
    def test_activity_for_account(self, admin_client):
        created = admin_client.post("/api/users", json=NEW_USER).json()

        resp = admin_client.get(f"/api/users/{created['id']}/activity")

        assert resp.status_code == 200
        assert [e["type"] for e in resp.json()] == ["account_created"]
