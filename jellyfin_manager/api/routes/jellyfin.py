import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from jellyfin_manager.adapters.jellyfin.client import JellyfinError, authenticate
from jellyfin_manager.api.deps import (
    get_clock,
    get_connection_repo,
    get_current_user,
    get_media_server,
    get_policy,
    get_rules,
    get_settings,
)
from jellyfin_manager.api.schemas import (
    FavoriteItem,
    FavoritesResponse,
    JellyfinConnectRequest,
    JellyfinStatusResponse,
    JellyfinUserResponse,
    LibraryResponse,
    MediaActivityEntry,
    MediaActivityResponse,
    WatchTimeResponse,
)
from jellyfin_manager.app_shell.config import Settings
from jellyfin_manager.domain.entities import AppUser, JellyfinConnection
from jellyfin_manager.rules.models import Rules

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_server_admin(user: AppUser, policy: Any) -> None:
    if not policy.can_manage_server(user):
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("/connect", response_model=JellyfinStatusResponse)
def connect(
    req: JellyfinConnectRequest,
    current_user: AppUser = Depends(get_current_user),
    connection_repo: Any = Depends(get_connection_repo),
    policy: Any = Depends(get_policy),
    rules: Rules = Depends(get_rules),
    clock: Any = Depends(get_clock),
) -> JellyfinStatusResponse:
    """Sign in to a Jellyfin server as an administrator and store the connection."""
    _require_server_admin(current_user, policy)

    url = req.url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        raise HTTPException(
            status_code=400, detail="Server URL must start with http:// or https://"
        )

    try:
        auth = authenticate(url, req.username, req.password, rules.jellyfin)
    except JellyfinError as e:
        logger.warning("Jellyfin sign-in to %s failed: %s", url, e)
        if e.status_code in (401, 403):
            raise HTTPException(status_code=401, detail=str(e)) from e
        raise HTTPException(status_code=502, detail=str(e)) from e

    if not auth.is_admin:
        raise HTTPException(
            status_code=403, detail="The Jellyfin account must be an administrator"
        )

    connection = connection_repo.save(
        JellyfinConnection(
            url=url,
            access_token=auth.access_token,
            server_user_id=auth.user_id,
            server_username=auth.username,
            connected_at=clock.now_utc(),
        )
    )
    logger.info("Connected to Jellyfin at %s as %s", url, auth.username)
    return JellyfinStatusResponse(
        connected=True,
        source="stored",
        url=connection.url,
        server_username=connection.server_username,
        connected_at=connection.connected_at,
    )


@router.get("/status", response_model=JellyfinStatusResponse)
def connection_status(
    current_user: AppUser = Depends(get_current_user),
    connection_repo: Any = Depends(get_connection_repo),
    policy: Any = Depends(get_policy),
    settings: Settings = Depends(get_settings),
) -> JellyfinStatusResponse:
    _require_server_admin(current_user, policy)

    connection = connection_repo.get()
    if connection is not None:
        return JellyfinStatusResponse(
            connected=True,
            source="stored",
            url=connection.url,
            server_username=connection.server_username,
            connected_at=connection.connected_at,
        )
    if settings.jellyfin_url and settings.jellyfin_api_key:
        return JellyfinStatusResponse(
            connected=True, source="environment", url=settings.jellyfin_url
        )
    return JellyfinStatusResponse(connected=False)


@router.post("/disconnect", response_model=JellyfinStatusResponse)
def disconnect(
    current_user: AppUser = Depends(get_current_user),
    connection_repo: Any = Depends(get_connection_repo),
    policy: Any = Depends(get_policy),
) -> JellyfinStatusResponse:
    """Forget the stored connection. An environment fallback, if configured, still applies."""
    _require_server_admin(current_user, policy)
    connection_repo.clear()
    logger.info("Jellyfin connection cleared by %s", current_user.username)
    return JellyfinStatusResponse(connected=False)


@router.get("/libraries", response_model=list[LibraryResponse])
def libraries(
    current_user: AppUser = Depends(get_current_user),
    media_server: Any = Depends(get_media_server),
    policy: Any = Depends(get_policy),
) -> list[LibraryResponse]:
    _require_server_admin(current_user, policy)
    try:
        folders = media_server.list_library_folders()
    except JellyfinError as e:
        logger.error("Listing Jellyfin libraries failed: %s", e)
        raise HTTPException(status_code=502, detail="Could not list libraries") from e

    return [
        LibraryResponse(
            id=str(f.get("Id", "")),
            name=f.get("Name", ""),
            collection_type=f.get("CollectionType"),
        )
        for f in folders
    ]


@router.get("/users", response_model=list[JellyfinUserResponse])
def server_users(
    current_user: AppUser = Depends(get_current_user),
    media_server: Any = Depends(get_media_server),
    policy: Any = Depends(get_policy),
) -> list[JellyfinUserResponse]:
    """Users on the Jellyfin server, for picking a profile source."""
    _require_server_admin(current_user, policy)
    try:
        users = media_server.list_users()
    except JellyfinError as e:
        logger.error("Listing Jellyfin users failed: %s", e)
        raise HTTPException(status_code=502, detail="Could not list Jellyfin users") from e

    result = []
    for u in users:
        server_policy = u.get("Policy") or {}
        result.append(
            JellyfinUserResponse(
                id=str(u.get("Id", "")),
                name=u.get("Name", ""),
                is_administrator=bool(server_policy.get("IsAdministrator")),
                is_disabled=bool(server_policy.get("IsDisabled")),
            )
        )
    return result


# --- Per-user server data ---


def _require_media_access(user: AppUser, jellyfin_user_id: str, policy: Any) -> None:
    if not policy.can_view_media_user(user, jellyfin_user_id):
        raise HTTPException(status_code=403, detail="Access denied")


def _server_read_failed(what: str, jellyfin_user_id: str, e: JellyfinError) -> HTTPException:
    logger.error("Reading %s of Jellyfin user %s failed: %s", what, jellyfin_user_id, e)
    if e.status_code == 404:
        return HTTPException(status_code=404, detail="Jellyfin user not found")
    return HTTPException(status_code=502, detail=f"Could not read {what} from Jellyfin")


@router.get("/users/{jellyfin_user_id}/activity", response_model=MediaActivityResponse)
def user_server_activity(
    jellyfin_user_id: str,
    limit: int = Query(10, ge=1, le=100),
    current_user: AppUser = Depends(get_current_user),
    media_server: Any = Depends(get_media_server),
    policy: Any = Depends(get_policy),
) -> MediaActivityResponse:
    """The Jellyfin server's own activity log for one user (playback, sign-ins)."""
    _require_media_access(current_user, jellyfin_user_id, policy)
    try:
        entries, total = media_server.get_activity_log(jellyfin_user_id, limit)
    except JellyfinError as e:
        raise _server_read_failed("activity", jellyfin_user_id, e) from e

    return MediaActivityResponse(
        items=[
            MediaActivityEntry(
                id=str(entry.get("Id", "")),
                name=entry.get("Name", ""),
                type=entry.get("Type", ""),
                date=str(entry.get("Date", "")),
                severity=entry.get("Severity"),
                item_id=entry.get("ItemId"),
                short_overview=entry.get("ShortOverview"),
            )
            for entry in entries
        ],
        total=total,
    )


@router.get("/users/{jellyfin_user_id}/watch-time", response_model=WatchTimeResponse)
def user_watch_time(
    jellyfin_user_id: str,
    current_user: AppUser = Depends(get_current_user),
    media_server: Any = Depends(get_media_server),
    policy: Any = Depends(get_policy),
) -> WatchTimeResponse:
    """Runtime of every movie and episode the user has played, in minutes."""
    _require_media_access(current_user, jellyfin_user_id, policy)
    try:
        minutes, played = media_server.get_watch_time(jellyfin_user_id)
    except JellyfinError as e:
        raise _server_read_failed("watch time", jellyfin_user_id, e) from e

    return WatchTimeResponse(
        user_id=jellyfin_user_id, total_minutes=minutes, items_played=played
    )


@router.get("/users/{jellyfin_user_id}/favorites", response_model=FavoritesResponse)
def user_favorites(
    jellyfin_user_id: str,
    limit: int = Query(20, ge=1, le=200),
    current_user: AppUser = Depends(get_current_user),
    media_server: Any = Depends(get_media_server),
    policy: Any = Depends(get_policy),
) -> FavoritesResponse:
    _require_media_access(current_user, jellyfin_user_id, policy)
    try:
        items, total = media_server.get_favorites(jellyfin_user_id, limit)
    except JellyfinError as e:
        raise _server_read_failed("favorites", jellyfin_user_id, e) from e

    return FavoritesResponse(
        items=[
            FavoriteItem(
                id=str(item.get("Id", "")),
                name=item.get("Name", ""),
                type=item.get("Type", ""),
                production_year=item.get("ProductionYear"),
                series_name=item.get("SeriesName"),
            )
            for item in items
        ],
        total=total,
    )
