from datetime import datetime, timedelta
from threading import Lock
from typing import Protocol

from jellyfin_manager.adapters.clock import SystemClock
from jellyfin_manager.rules.models import RateLimitRules


class TimePort(Protocol):
    """Protocol for time operations (enables testing with deterministic time)."""

    def now_utc(self) -> datetime:
        """Return current UTC time."""
        ...


class RateLimiter:
    """Sliding-window limiter kept in process memory."""

    def __init__(
        self,
        rules: RateLimitRules,
        time_port: TimePort | None = None,
    ):
        self.rules = rules
        self._time = time_port if time_port is not None else SystemClock()
        self._history: dict[str, list[datetime]] = {}
        self._lock = Lock()

    def _cleanup(self, key: str, window: int) -> None:
        cutoff = self._time.now_utc() - timedelta(seconds=window)
        if key in self._history:
            self._history[key] = [t for t in self._history[key] if t > cutoff]
            if not self._history[key]:
                del self._history[key]

    def allow_request(self, key: str, window: int, limit: int) -> bool:
        """
        Check if request is allowed.
        If allowed, records the attempt and returns True.
        If denied, returns False.
        """
        if limit <= 0:
            return False

        with self._lock:
            self._cleanup(key, window)
            if len(self._history.get(key, [])) >= limit:
                return False
            self._history.setdefault(key, []).append(self._time.now_utc())
            return True

    def check_login(self, ip: str) -> bool:
        cfg = self.rules.login
        limit = cfg.max_attempts if cfg.max_attempts is not None else 5
        return self.allow_request(f"login:{ip}", cfg.window_seconds, limit)

    def check_redeem(self, ip: str) -> bool:
        cfg = self.rules.redeem
        limit = cfg.max_requests if cfg.max_requests is not None else 10
        return self.allow_request(f"redeem:{ip}", cfg.window_seconds, limit)

    def reset(self) -> None:
        with self._lock:
            self._history.clear()
