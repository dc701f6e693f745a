from typing import Any, Protocol


class MediaServerPort(Protocol):
    """Operations the backend needs from the Jellyfin server."""

    def create_user(self, username: str, password: str) -> str:
        """Create a media server user and return its id."""
        ...

    def delete_user(self, user_id: str) -> None:
        ...

    def set_library_access(self, user_id: str, library_ids: list[str]) -> None:
        """Restrict the user to the given libraries."""
        ...

    def get_library_access(self, user_id: str) -> list[str]:
        ...

    def set_disabled(self, user_id: str, disabled: bool) -> None:
        ...

    def list_library_folders(self) -> list[dict[str, Any]]:
        ...

    def list_users(self) -> list[dict[str, Any]]:
        ...

    def get_activity_log(
        self, user_id: str, limit: int = 10
    ) -> tuple[list[dict[str, Any]], int]:
        """Newest activity log entries for the user and the total count."""
        ...

    def get_watch_time(self, user_id: str) -> tuple[int, int]:
        """Minutes watched and number of played items."""
        ...

    def get_favorites(
        self, user_id: str, limit: int = 20
    ) -> tuple[list[dict[str, Any]], int]:
        ...
