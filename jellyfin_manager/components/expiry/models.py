from dataclasses import dataclass, field

from jellyfin_manager.domain.entities import AppUser


@dataclass(frozen=True)
class ExpiryFailure:
    """An account that expired but whose Jellyfin user could not be disabled."""

    username: str
    message: str


@dataclass
class DisableExpiredOutput:
    disabled: list[AppUser] = field(default_factory=list)
    failures: list[ExpiryFailure] = field(default_factory=list)
    success: bool = True
