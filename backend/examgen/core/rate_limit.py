# backend/examgen/core/rate_limit.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Tuple

from .schemas import RateLimit

logger = logging.getLogger("examgen.rate_limit")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyRateLimiter:
    """Fixed-window generation quota per client, reset at the next UTC midnight.

    In-memory only: { client_id: (window_reset_time, used) }
    """

    def __init__(self, limit: int, clock: Callable[[], datetime] = _utcnow):
        self.limit = limit
        self._clock = clock
        self._windows: Dict[str, Tuple[datetime, int]] = {}
        self._next_sweep: datetime | None = None

    def _sweep(self, now: datetime) -> None:
        """Drop every window that has already expired, once per day rollover."""
        if self._next_sweep is not None and now < self._next_sweep:
            return
        expired = [cid for cid, (reset_time, _) in self._windows.items() if reset_time <= now]
        for cid in expired:
            del self._windows[cid]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired rate-limit windows")
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        self._next_sweep = midnight + timedelta(days=1)

    def _window(self, client_id: str) -> Tuple[datetime, int]:
        now = self._clock()
        self._sweep(now)
        reset_time, used = self._windows.get(client_id, (now, 0))
        if now >= reset_time:
            midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
            reset_time, used = midnight + timedelta(days=1), 0
            self._windows[client_id] = (reset_time, used)
        return reset_time, used

    def peek(self, client_id: str) -> RateLimit:
        reset_time, used = self._window(client_id)
        return RateLimit(remaining=max(self.limit - used, 0), reset_time=reset_time)

    def hit(self, client_id: str) -> Tuple[bool, RateLimit]:
        """Consume one generation. Returns (allowed, advisory after the attempt)."""
        reset_time, used = self._window(client_id)
        if used >= self.limit:
            logger.warning(f"Rate limit exceeded for client={client_id}")
            return False, RateLimit(remaining=0, reset_time=reset_time)

        used += 1
        self._windows[client_id] = (reset_time, used)
        logger.debug(f"client={client_id} used {used}/{self.limit} generations")
        return True, RateLimit(remaining=self.limit - used, reset_time=reset_time)

    def refund(self, client_id: str) -> None:
        """Give back one generation, e.g. when the generation itself failed."""
        reset_time, used = self._window(client_id)
        if used > 0:
            self._windows[client_id] = (reset_time, used - 1)

    def reset(self) -> None:
        self._windows.clear()
        self._next_sweep = None

    def __len__(self) -> int:
        return len(self._windows)
