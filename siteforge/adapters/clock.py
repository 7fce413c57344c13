from datetime import UTC, datetime, timedelta


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)

    def is_past_or_now(self, utc_dt: datetime) -> bool:
        return utc_dt <= self.now_utc()

    def is_future(self, utc_dt: datetime, grace_seconds: int = 0) -> bool:
        return utc_dt > (self.now_utc() - timedelta(seconds=grace_seconds))


class FrozenClock:
    """Clock pinned to a fixed instant; `advance` moves it forward."""

    def __init__(self, at: datetime) -> None:
        self._now = at if at.tzinfo else at.replace(tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._now

    def advance(self, **delta: float) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now
