"""
Jellyfin REST client.

Implements MediaServerPort over the Jellyfin HTTP API using a shared
``requests.Session`` with retries on transient server errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from jellyfin_manager.rules.models import JellyfinRules

logger = logging.getLogger(__name__)

# Jellyfin durations are .NET ticks of 100ns
TICKS_PER_MINUTE = 10_000_000 * 60


class JellyfinError(Exception):
    """A Jellyfin request failed or returned an unexpected response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class JellyfinAuthResult:
    access_token: str
    user_id: str
    username: str
    is_admin: bool
    server_id: str | None = None


def authorization_header(rules: JellyfinRules, token: str | None = None) -> str:
    parts = [
        f'Client="{rules.client_name}"',
        f'Device="{rules.device_name}"',
        f'DeviceId="{rules.device_id}"',
        f'Version="{rules.client_version}"',
    ]
    if token:
        parts.append(f'Token="{token}"')
    return "MediaBrowser " + ", ".join(parts)


def build_session(rules: JellyfinRules) -> requests.Session:
    session = requests.Session()
    retry = Retry(
        total=rules.max_retries,
        backoff_factor=rules.backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "DELETE"],
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class JellyfinClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        rules: JellyfinRules,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.rules = rules
        self.session = session if session is not None else build_session(rules)
        self.session.headers.update(
            {
                "X-Emby-Token": token,
                "X-Emby-Authorization": authorization_header(rules, token),
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    # --- Transport ---

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(
                method, url, timeout=self.rules.request_timeout_seconds, **kwargs
            )
        except requests.RequestException as e:
            raise JellyfinError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            detail = (resp.text or "").strip()[:200]
            raise JellyfinError(
                f"{method} {path} returned {resp.status_code}: {detail}",
                status_code=resp.status_code,
            )
        return resp

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = self._request(method, path, **kwargs)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise JellyfinError(f"{method} {path} returned invalid JSON") from e

    # --- Users ---

    def create_user(self, username: str, password: str) -> str:
        created = self._json("POST", "/Users/New", json={"Name": username})
        if not isinstance(created, dict) or not created.get("Id"):
            raise JellyfinError("Jellyfin did not return an id for the new user")

        user_id = str(created["Id"])
        try:
            self._request(
                "POST",
                f"/Users/{user_id}/Password",
                json={"Id": user_id, "CurrentPw": "", "NewPw": password},
            )
        except JellyfinError:
            # Never leave a passwordless account behind.
            self.delete_user(user_id)
            raise

        logger.info("Created Jellyfin user %s (%s)", username, user_id)
        return user_id

    def delete_user(self, user_id: str) -> None:
        try:
            self._request("DELETE", f"/Users/{user_id}")
        except JellyfinError as e:
            if e.status_code == 404:
                logger.info("Jellyfin user %s was already gone", user_id)
                return
            raise
        logger.info("Deleted Jellyfin user %s", user_id)

    def get_user(self, user_id: str) -> dict[str, Any]:
        user = self._json("GET", f"/Users/{user_id}")
        if not isinstance(user, dict):
            raise JellyfinError(f"Unexpected user payload for {user_id}")
        return user

    def list_users(self) -> list[dict[str, Any]]:
        users = self._json("GET", "/Users")
        return list(users or [])

    # --- Policy ---

    def get_policy(self, user_id: str) -> dict[str, Any]:
        return dict(self.get_user(user_id).get("Policy") or {})

    def update_policy(self, user_id: str, policy: dict[str, Any]) -> None:
        self._request("POST", f"/Users/{user_id}/Policy", json=policy)

    def set_library_access(self, user_id: str, library_ids: list[str]) -> None:
        policy = self.get_policy(user_id)
        policy["EnableAllFolders"] = False
        policy["EnabledFolders"] = list(library_ids)
        self.update_policy(user_id, policy)

    def get_library_access(self, user_id: str) -> list[str]:
        policy = self.get_policy(user_id)
        return [str(folder) for folder in policy.get("EnabledFolders") or []]

    def set_disabled(self, user_id: str, disabled: bool) -> None:
        policy = self.get_policy(user_id)
        policy["IsDisabled"] = disabled
        self.update_policy(user_id, policy)

    # --- Libraries ---

    def list_library_folders(self) -> list[dict[str, Any]]:
        data = self._json("GET", "/Library/MediaFolders")
        if isinstance(data, dict):
            return list(data.get("Items") or [])
        return list(data or [])

    # --- Per-user data ---

    def _items_page(
        self, path: str, params: dict[str, Any]
    ) -> tuple[list[dict[str, Any]], int]:
        data = self._json("GET", path, params=params)
        if not isinstance(data, dict):
            raise JellyfinError(f"Unexpected payload from {path}")
        items = list(data.get("Items") or [])
        return items, int(data.get("TotalRecordCount", len(items)))

    def get_activity_log(
        self, user_id: str, limit: int = 10
    ) -> tuple[list[dict[str, Any]], int]:
        """Newest server activity log entries for one user, and the total count."""
        return self._items_page(
            "/System/ActivityLog/Entries", {"userId": user_id, "limit": limit}
        )

    def get_played_items(self, user_id: str) -> list[dict[str, Any]]:
        items, _ = self._items_page(
            f"/Users/{user_id}/Items",
            {
                "Recursive": "true",
                "Filters": "IsPlayed",
                "IncludeItemTypes": "Movie,Episode",
                "Fields": "RunTimeTicks",
            },
        )
        return items

    def get_watch_time(self, user_id: str) -> tuple[int, int]:
        """Total minutes of played movies and episodes, and how many were played."""
        items = self.get_played_items(user_id)
        ticks = sum(int(item.get("RunTimeTicks") or 0) for item in items)
        return ticks // TICKS_PER_MINUTE, len(items)

    def get_favorites(
        self, user_id: str, limit: int = 20
    ) -> tuple[list[dict[str, Any]], int]:
        return self._items_page(
            f"/Users/{user_id}/Items",
            {
                "Recursive": "true",
                "Filters": "IsFavorite",
                "SortBy": "SortName",
                "Fields": "ProductionYear",
                "Limit": limit,
            },
        )


def authenticate(
    base_url: str,
    username: str,
    password: str,
    rules: JellyfinRules,
    session: requests.Session | None = None,
) -> JellyfinAuthResult:
    """Sign in to Jellyfin with a username and password (AuthenticateByName)."""
    session = session if session is not None else build_session(rules)
    url = f"{base_url.rstrip('/')}/Users/AuthenticateByName"
    try:
        resp = session.post(
            url,
            json={"Username": username, "Pw": password},
            headers={
                "X-Emby-Authorization": authorization_header(rules),
                "Content-Type": "application/json",
            },
            timeout=rules.request_timeout_seconds,
        )
    except requests.RequestException as e:
        raise JellyfinError(f"Could not reach Jellyfin at {base_url}: {e}") from e

    if resp.status_code in (401, 403):
        raise JellyfinError("Invalid Jellyfin username or password", status_code=resp.status_code)
    if resp.status_code >= 400:
        raise JellyfinError(
            f"Jellyfin authentication failed with {resp.status_code}", status_code=resp.status_code
        )

    try:
        data = resp.json()
    except ValueError as e:
        raise JellyfinError("Jellyfin returned an invalid authentication response") from e

    user = data.get("User") or {}
    token = data.get("AccessToken")
    if not token or not user.get("Id"):
        raise JellyfinError("Jellyfin authentication response is missing the token")

    return JellyfinAuthResult(
        access_token=token,
        user_id=str(user["Id"]),
        username=user.get("Name", username),
        is_admin=bool((user.get("Policy") or {}).get("IsAdministrator")),
        server_id=data.get("ServerId"),
    )
