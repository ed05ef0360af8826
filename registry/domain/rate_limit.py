"""
Submission rate limiting - Sliding window per origin.

The check and the insert are two separate statements. A burst of
concurrent requests from one origin may slip a few attempts past the
threshold; that is accepted in exchange for not serializing signups.
"""

import logging
from dataclasses import dataclass

from .policy import RegistryPolicy
from .ports import Clock, RateLimitRepository

logger = logging.getLogger(__name__)


@dataclass
class RateLimiter:
    """Counts prior attempts in the trailing window and records new ones."""

    repository: RateLimitRepository
    clock: Clock
    policy: RegistryPolicy

    def check_and_record(self, origin: str) -> bool:
        """
        Decide whether ``origin`` may submit, recording the attempt if so.

        Returns:
            True if allowed (attempt recorded), False if over the limit
            (nothing recorded)
        """
        now = self.clock.now()
        since = now - self.policy.rate_limit_window
        count = self.repository.count_since(origin, since)
        if count >= self.policy.rate_limit_max_attempts:
            logger.warning("Rate limit hit for origin %s (%d attempts)", origin, count)
            return False

        self.repository.record(origin, now)
        return True
