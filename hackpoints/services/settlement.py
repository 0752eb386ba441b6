from dataclasses import dataclass

SECONDS_PER_HOUR = 3600


@dataclass(frozen=True)
class VoteSettlement:
    voter_points: int
    creator_points: int
    creator_hours: int


def session_points(active_seconds: int, points_per_hour: int) -> int:
    """Points earned by a session; floors toward zero, never negative."""
    if active_seconds <= 0 or points_per_hour <= 0:
        return 0
    # Integer arithmetic keeps floor(hours * rate) exact
    return (active_seconds * points_per_hour) // SECONDS_PER_HOUR


def vote_settlement(creator_session_seconds: int, voter_points: int, creator_points_per_hour: int) -> VoteSettlement:
    """Split of one vote: a flat amount for the voter, and for the creator
    a per-hour bonus on the duration of the session that produced the scrap."""
    return VoteSettlement(
        voter_points=max(0, voter_points),
        creator_points=session_points(creator_session_seconds, creator_points_per_hour),
        creator_hours=max(0, creator_session_seconds) // SECONDS_PER_HOUR,
    )


def scrap_total_points(base_points: int, bonus_points: int) -> int:
    return base_points + max(0, bonus_points)
