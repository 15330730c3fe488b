"""Redis-backed send quota and job locks."""

from datetime import datetime, timezone

import redis as redis_lib
import structlog

from leadflow.config import Settings
from leadflow.services.lifecycle import local_date

logger = structlog.get_logger()

_redis: redis_lib.Redis | None = None


def get_redis(settings: Settings) -> redis_lib.Redis:
    global _redis
    if _redis is None:
        _redis = redis_lib.from_url(settings.redis_url, decode_responses=True)
    return _redis


class QuotaExceededError(Exception):
    def __init__(self, used: int, limit: int):
        self.used = used
        self.limit = limit
        super().__init__(f"Daily send quota reached: {used}/{limit}")


class DailySendQuota:
    """Counts initial sends per local calendar day against a hard cap."""

    def __init__(self, r: redis_lib.Redis, limit: int, tz: str, clock=None):
        self.r = r
        self.limit = limit
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _day_key(self) -> str:
        today = local_date(self.clock(), self.tz).isoformat()
        return f"quota:initial_sends:{today}"

    def used(self) -> int:
        return int(self.r.get(self._day_key()) or 0)

    def remaining(self) -> int:
        return max(self.limit - self.used(), 0)

    def check(self) -> None:
        """Raise if no initial sends are left today."""
        used = self.used()
        if used >= self.limit:
            raise QuotaExceededError(used, self.limit)

    def increment(self) -> int:
        key = self._day_key()
        pipe = self.r.pipeline()
        pipe.incr(key)
        pipe.expire(key, 86400 * 2)  # expire after 2 days
        count, _ = pipe.execute()
        return int(count)


def job_lock(r: redis_lib.Redis, job: str, settings: Settings):
    """Named lock for one job type; ``acquire()`` waits at most ``lock_wait_seconds``."""
    return r.lock(
        f"lock:job:{job}",
        timeout=settings.lock_ttl_seconds,
        blocking_timeout=settings.lock_wait_seconds,
    )
