from __future__ import annotations

from datetime import datetime, timedelta, timezone

from examgen.core.rate_limit import DailyRateLimiter


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_quota_counts_down_and_blocks():
    clock = FakeClock(datetime(2026, 3, 1, 15, 30, tzinfo=timezone.utc))
    limiter = DailyRateLimiter(limit=2, clock=clock)

    ok, advisory = limiter.hit("1.2.3.4")
    assert ok and advisory.remaining == 1
    assert advisory.reset_time == datetime(2026, 3, 2, tzinfo=timezone.utc)

    ok, advisory = limiter.hit("1.2.3.4")
    assert ok and advisory.remaining == 0

    ok, advisory = limiter.hit("1.2.3.4")
    assert not ok and advisory.remaining == 0

    # Other clients have their own window
    assert limiter.peek("5.6.7.8").remaining == 2


def test_window_resets_at_midnight():
    clock = FakeClock(datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc))
    limiter = DailyRateLimiter(limit=1, clock=clock)
    assert limiter.hit("c")[0]
    assert not limiter.hit("c")[0]

    clock.now += timedelta(minutes=2)
    ok, advisory = limiter.hit("c")
    assert ok
    assert advisory.reset_time == datetime(2026, 3, 3, tzinfo=timezone.utc)


def test_refund_gives_back_one_generation():
    limiter = DailyRateLimiter(limit=1)
    limiter.hit("c")
    assert limiter.peek("c").remaining == 0
    limiter.refund("c")
    assert limiter.peek("c").remaining == 1
    limiter.refund("c")
    assert limiter.peek("c").remaining == 1


def test_expired_windows_are_dropped_after_rollover():
    clock = FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))
    limiter = DailyRateLimiter(limit=3, clock=clock)
    for i in range(1000):
        limiter.hit(f"10.0.{i // 256}.{i % 256}")
    assert len(limiter) == 1000

    # Same day: nothing has expired yet
    clock.now += timedelta(hours=6)
    limiter.hit("fresh-today")
    assert len(limiter) == 1001

    clock.now += timedelta(days=30)
    ok, advisory = limiter.hit("newcomer")
    assert ok and advisory.remaining == 2
    assert len(limiter) == 1
