"""Active-time arithmetic for scrapper sessions.

Everything here is pure: timestamps in, whole seconds out. Pause time is
never tracked by a running clock; it is folded from stored timestamps
whenever a session is read or transitions.
"""
import math
from datetime import datetime
from typing import Optional

from ..clock import utcnow
from ..models.session import SessionStatus


def _whole_seconds(start: datetime, end: datetime) -> int:
    return math.floor((end - start).total_seconds())


def pause_interval_seconds(last_paused_at: Optional[datetime], now: datetime) -> int:
    """Seconds spent in the current pause, floored and never negative."""
    if last_paused_at is None:
        return 0
    return max(0, _whole_seconds(last_paused_at, now))


def elapsed_active_seconds(
    start_time: datetime,
    status: SessionStatus,
    last_paused_at: Optional[datetime],
    total_paused_seconds: int,
    reference_time: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> int:
    """Wall time since ``start_time`` minus accumulated pause time.

    A completed or cancelled session is measured up to ``completed_at``; a
    paused one stops accruing at ``last_paused_at``; an active one runs up to
    ``reference_time``.
    """
    if completed_at is not None:
        end = completed_at
    elif status == SessionStatus.PAUSED and last_paused_at is not None:
        end = last_paused_at
    else:
        end = reference_time if reference_time is not None else utcnow()

    return max(0, _whole_seconds(start_time, end) - total_paused_seconds)


def elapsed_active_minutes(
    start_time: datetime,
    status: SessionStatus,
    last_paused_at: Optional[datetime],
    total_paused_seconds: int,
    reference_time: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> int:
    seconds = elapsed_active_seconds(
        start_time, status, last_paused_at, total_paused_seconds, reference_time, completed_at
    )
    return seconds // 60


def session_active_seconds(session, now: datetime) -> int:
    """Convenience wrapper over a ScrapperSession row."""
    return elapsed_active_seconds(
        start_time=session.start_time,
        status=session.status,
        last_paused_at=session.last_paused_at,
        total_paused_seconds=session.total_paused_seconds or 0,
        reference_time=now,
        completed_at=session.completed_at,
    )
