from datetime import UTC, datetime, timedelta


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)

    def is_past_or_now(self, utc_dt: datetime) -> bool:
        return utc_dt <= self.now_utc()


class FrozenClock:
    """
    Clock that returns a fixed instant until advanced.

    Useful for deterministic testing and for replaying a sweep at a given time.
    """

    def __init__(self, frozen_utc: datetime) -> None:
        if frozen_utc.tzinfo is None:
            frozen_utc = frozen_utc.replace(tzinfo=UTC)
        self._frozen_utc = frozen_utc.astimezone(UTC)

    def now_utc(self) -> datetime:
        return self._frozen_utc

    def is_past_or_now(self, utc_dt: datetime) -> bool:
        if utc_dt.tzinfo is None:
            utc_dt = utc_dt.replace(tzinfo=UTC)
        return utc_dt <= self._frozen_utc

    def advance(self, delta: timedelta) -> None:
        """Advance frozen time by delta."""
        self._frozen_utc = self._frozen_utc + delta

    def set(self, utc_dt: datetime) -> None:
        if utc_dt.tzinfo is None:
            utc_dt = utc_dt.replace(tzinfo=UTC)
        self._frozen_utc = utc_dt.astimezone(UTC)
