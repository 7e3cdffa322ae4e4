# unimeet/services/clock.py
from datetime import datetime, timedelta, timezone


class SystemClock:
    """Wall-clock time as naive UTC, the format every DateTime column uses."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """
    Clock frozen at a given instant.

    Used by tests to control lead time, hold TTL and reminder windows, and by
    the maintenance script to replay a tick at a chosen time.
    """

    def __init__(self, at: datetime):
        self._now = at

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


_system_clock = SystemClock()


def get_clock() -> SystemClock:
    """FastAPI dependency returning the wall clock."""
    return _system_clock
