import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from ..clock import Clock
from ..errors import VoteRateLimitError
from ..repositories.scrapper import ScrapperRepository

log = logging.getLogger(__name__)


class VoteRateLimiter:
    """Trailing-window vote counter.

    The window is recomputed from stored vote timestamps on every call; there
    are no buckets and nothing is cached between calls.
    """

    def __init__(self, repo: ScrapperRepository, clock: Clock, max_votes: int = 5, window_minutes: int = 60):
        self.repo = repo
        self.clock = clock
        self.max_votes = max_votes
        self.window = timedelta(minutes=window_minutes)

    def _window_start(self, now: datetime) -> datetime:
        return now - self.window

    async def votes_in_last_hour(self, user_id: int) -> int:
        return await self.repo.count_votes_since(self._window_start(self.clock.now()), user_id=user_id)

    async def oldest_vote_time_in_last_hour(self, user_id: int) -> Optional[datetime]:
        return await self.repo.oldest_vote_since(user_id, self._window_start(self.clock.now()))

    async def seconds_until_next_vote(self, user_id: int) -> int:
        """0 when the user may vote now, else the wait until the oldest vote leaves the window."""
        now = self.clock.now()
        count = await self.repo.count_votes_since(self._window_start(now), user_id=user_id)
        if count < self.max_votes:
            return 0
        oldest = await self.repo.oldest_vote_since(user_id, self._window_start(now))
        if oldest is None:
            return 0
        return max(0, math.ceil((oldest + self.window - now).total_seconds()))

    async def ensure_can_vote(self, user_id: int) -> None:
        wait = await self.seconds_until_next_vote(user_id)
        if wait > 0:
            log.info("Vote rate limit reached for user %s, retry in %ss", user_id, wait)
            raise VoteRateLimitError(self.max_votes, wait)
