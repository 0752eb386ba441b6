from datetime import datetime, timezone
from typing import Protocol


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall clock used outside of tests."""

    def now(self) -> datetime:
        return utcnow()
