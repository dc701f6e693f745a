"""
Jellyfin client tests.

The HTTP session is a MagicMock, so these check the requests the client
makes and how it reads the answers without a server.
"""

from unittest.mock import MagicMock

import pytest
import requests

from jellyfin_manager.adapters.jellyfin.client import (
    JellyfinClient,
    JellyfinError,
    authenticate,
    authorization_header,
    build_session,
)
from jellyfin_manager.app_shell.config import DEFAULT_RULES_PATH
from jellyfin_manager.rules.loader import load_rules

BASE_URL = "http://jellyfin.local:8096"


def make_response(status_code: int = 200, payload=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = b"{}" if payload is not None else b""
    resp.json.return_value = payload
    resp.text = ""
    return resp


@pytest.fixture
def rules():
    return load_rules(DEFAULT_RULES_PATH).jellyfin


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(rules, session):
    return JellyfinClient(BASE_URL + "/", "api-token", rules, session=session)


def sent(session, index: int) -> tuple:
    call = session.request.call_args_list[index]
    return call.args[0], call.args[1], call.kwargs.get("json")


class TestHeaders:
    def test_authorization_header(self, rules):
        header = authorization_header(rules)

        assert header.startswith("MediaBrowser ")
        assert f'Client="{rules.client_name}"' in header
        assert "Token=" not in header

    def test_authorization_header_with_token(self, rules):
        assert 'Token="abc"' in authorization_header(rules, "abc")

    def test_client_sets_token_headers(self, client, session):
        headers = session.headers.update.call_args.args[0]
        assert headers["X-Emby-Token"] == "api-token"
        assert client.base_url == BASE_URL

    def test_session_retries(self, rules):
        adapter = build_session(rules).get_adapter("http://example.com")
        assert adapter.max_retries.total == rules.max_retries


class TestUsers:
    def test_create_user_sets_password(self, client, session):
        session.request.side_effect = [
            make_response(200, {"Id": "u1", "Name": "alice"}),
            make_response(204),
        ]

        assert client.create_user("alice", "Secret123") == "u1"

        assert sent(session, 0) == ("POST", f"{BASE_URL}/Users/New", {"Name": "alice"})
        method, url, body = sent(session, 1)
        assert (method, url) == ("POST", f"{BASE_URL}/Users/u1/Password")
        assert body["NewPw"] == "Secret123"

    def test_create_user_removed_when_password_fails(self, client, session):
        session.request.side_effect = [
            make_response(200, {"Id": "u1"}),
            make_response(500),
            make_response(204),
        ]

        with pytest.raises(JellyfinError):
            client.create_user("alice", "Secret123")

        assert sent(session, 2)[:2] == ("DELETE", f"{BASE_URL}/Users/u1")

    def test_create_user_without_id(self, client, session):
        session.request.return_value = make_response(200, {})

        with pytest.raises(JellyfinError):
            client.create_user("alice", "Secret123")

    def test_delete_missing_user_is_ok(self, client, session):
        session.request.return_value = make_response(404)
        client.delete_user("gone")

    def test_delete_user_error(self, client, session):
        session.request.return_value = make_response(500)

        with pytest.raises(JellyfinError) as exc_info:
            client.delete_user("u1")

        assert exc_info.value.status_code == 500

    def test_connection_error(self, client, session):
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(JellyfinError, match="failed"):
            client.list_users()


class TestPolicy:
    def test_set_library_access(self, client, session):
        session.request.side_effect = [
            make_response(200, {"Id": "u1", "Policy": {"EnableAllFolders": True, "X": 1}}),
            make_response(204),
        ]

        client.set_library_access("u1", ["lib-a", "lib-b"])

        method, url, body = sent(session, 1)
        assert (method, url) == ("POST", f"{BASE_URL}/Users/u1/Policy")
        assert body == {"EnableAllFolders": False, "EnabledFolders": ["lib-a", "lib-b"], "X": 1}

    def test_get_library_access(self, client, session):
        session.request.return_value = make_response(
            200, {"Id": "u1", "Policy": {"EnabledFolders": ["lib-a"]}}
        )
        assert client.get_library_access("u1") == ["lib-a"]

    def test_set_disabled(self, client, session):
        session.request.side_effect = [
            make_response(200, {"Id": "u1", "Policy": {"IsDisabled": False}}),
            make_response(204),
        ]

        client.set_disabled("u1", True)

        assert sent(session, 1)[2] == {"IsDisabled": True}


class TestLibraries:
    def test_items_wrapper(self, client, session):
        session.request.return_value = make_response(200, {"Items": [{"Id": "l1"}]})
        assert client.list_library_folders() == [{"Id": "l1"}]

    def test_plain_list(self, client, session):
        session.request.return_value = make_response(200, [{"Id": "l1"}])
        assert client.list_library_folders() == [{"Id": "l1"}]


class TestUserData:
    def test_activity_log(self, client, session):
        session.request.return_value = make_response(
            200, {"Items": [{"Id": 1, "Name": "alice played X"}], "TotalRecordCount": 42}
        )

        entries, total = client.get_activity_log("u1", limit=5)

        assert entries == [{"Id": 1, "Name": "alice played X"}]
        assert total == 42
        call = session.request.call_args
        assert call.args == ("GET", f"{BASE_URL}/System/ActivityLog/Entries")
        assert call.kwargs["params"] == {"userId": "u1", "limit": 5}

    def test_watch_time_sums_runtime_of_played_items(self, client, session):
        hour = 10_000_000 * 60 * 60
        session.request.return_value = make_response(
            200,
            {
                "Items": [
                    {"Id": "m1", "RunTimeTicks": 2 * hour},
                    {"Id": "e1", "RunTimeTicks": hour // 2},
                    {"Id": "e2"},
                ],
                "TotalRecordCount": 3,
            },
        )

        assert client.get_watch_time("u1") == (150, 3)
        call = session.request.call_args
        assert call.args[1] == f"{BASE_URL}/Users/u1/Items"
        assert call.kwargs["params"]["Filters"] == "IsPlayed"
        assert call.kwargs["params"]["Recursive"] == "true"

    def test_nothing_played(self, client, session):
        session.request.return_value = make_response(200, {"Items": [], "TotalRecordCount": 0})

        assert client.get_watch_time("u1") == (0, 0)

    def test_favorites(self, client, session):
        session.request.return_value = make_response(
            200, {"Items": [{"Id": "m1", "Name": "Heat", "Type": "Movie"}], "TotalRecordCount": 9}
        )

        items, total = client.get_favorites("u1", limit=1)

        assert [i["Name"] for i in items] == ["Heat"]
        assert total == 9
        params = session.request.call_args.kwargs["params"]
        assert params["Filters"] == "IsFavorite"
        assert params["Limit"] == 1

    def test_unexpected_payload(self, client, session):
        session.request.return_value = make_response(200, ["not", "a", "page"])

        with pytest.raises(JellyfinError, match="Unexpected payload"):
            client.get_favorites("u1")


class TestAuthenticate:
    def test_success(self, rules, session):
        session.post.return_value = make_response(
            200,
            {
                "AccessToken": "tok",
                "ServerId": "srv",
                "User": {"Id": "admin-id", "Name": "root", "Policy": {"IsAdministrator": True}},
            },
        )

        result = authenticate(BASE_URL, "root", "pw", rules, session=session)

        assert result.access_token == "tok"
        assert result.user_id == "admin-id"
        assert result.is_admin is True
        assert session.post.call_args.args[0] == f"{BASE_URL}/Users/AuthenticateByName"
        assert session.post.call_args.kwargs["json"] == {"Username": "root", "Pw": "pw"}

    def test_bad_credentials(self, rules, session):
        session.post.return_value = make_response(401)

        with pytest.raises(JellyfinError) as exc_info:
            authenticate(BASE_URL, "root", "wrong", rules, session=session)

        assert exc_info.value.status_code == 401

    def test_missing_token(self, rules, session):
        session.post.return_value = make_response(200, {"User": {"Id": "x"}})

        with pytest.raises(JellyfinError):
            authenticate(BASE_URL, "root", "pw", rules, session=session)

    def test_unreachable(self, rules, session):
        session.post.side_effect = requests.ConnectionError("no route")

        with pytest.raises(JellyfinError, match="Could not reach"):
            authenticate(BASE_URL, "root", "pw", rules, session=session)
