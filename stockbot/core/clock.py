from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]

# BSON dates carry milliseconds; everything we persist is truncated to match.
TICK = timedelta(milliseconds=1)


def truncate_ms(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def utcnow() -> datetime:
    return truncate_ms(datetime.now(timezone.utc))


def as_utc(dt: datetime) -> datetime:
    """pymongo hands back naive datetimes unless tz_aware is set; treat those as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class ManualClock:
    """
    Deterministic clock for tests and replay: time only moves when told to.
    """

    def __init__(self, start: datetime | None = None):
        self._now = truncate_ms(start or datetime(2024, 1, 1, tzinfo=timezone.utc))

    def __call__(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> datetime:
        self._now = truncate_ms(self._now + timedelta(**kwargs))
        return self._now
