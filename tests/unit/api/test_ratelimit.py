"""
Tests for SlidingWindowLimiter.
"""

import pytest

from gatebridge.api.ratelimit import SlidingWindowLimiter


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestSlidingWindowLimiter:
    def test_allows_up_to_limit(self):
        limiter = SlidingWindowLimiter(3, 10.0, clock=FakeClock())
        assert [limiter.hit("a") for _ in range(3)] == [None, None, None]
        assert limiter.hit("a") == 10.0

    def test_retry_after_counts_down(self):
        clock = FakeClock()
        limiter = SlidingWindowLimiter(1, 10.0, clock=clock)
        limiter.hit("a")

        clock.now = 4.0
        assert limiter.hit("a") == pytest.approx(6.0)

    def test_window_slides(self):
        clock = FakeClock()
        limiter = SlidingWindowLimiter(2, 10.0, clock=clock)
        limiter.hit("a")
        clock.now = 5.0
        limiter.hit("a")

        clock.now = 10.0
        assert limiter.hit("a") is None
        assert limiter.hit("a") == pytest.approx(5.0)

    def test_rejected_hits_are_not_recorded(self):
        """Hammering while limited does not push the window further out."""
        clock = FakeClock()
        limiter = SlidingWindowLimiter(1, 10.0, clock=clock)
        limiter.hit("a")
        for t in range(1, 10):
            clock.now = float(t)
            assert limiter.hit("a") is not None

        clock.now = 10.0
        assert limiter.hit("a") is None

    def test_callers_are_independent(self):
        limiter = SlidingWindowLimiter(1, 10.0, clock=FakeClock())
        assert limiter.hit("a") is None
        assert limiter.hit("b") is None
        assert limiter.hit("a") is not None

    def test_reset(self):
        limiter = SlidingWindowLimiter(1, 10.0, clock=FakeClock())
        limiter.hit("a")
        limiter.hit("b")

        limiter.reset("a")
        assert limiter.hit("a") is None
        assert limiter.hit("b") is not None

        limiter.reset()
        assert limiter.hit("b") is None

    def test_idle_callers_are_forgotten(self):
        """Callers that stop sending do not keep an entry forever."""
        clock = FakeClock()
        limiter = SlidingWindowLimiter(2, 10.0, clock=clock)
        limiter.hit("idle")
        clock.now = 5.0
        limiter.hit("recent")

        clock.now = 10.0
        limiter.hit("new")

        assert set(limiter._hits) == {"recent", "new"}

    @pytest.mark.parametrize("limit,window", [(0, 10.0), (1, 0.0), (1, -5.0)])
    def test_rejects_bad_arguments(self, limit, window):
        with pytest.raises(ValueError):
            SlidingWindowLimiter(limit, window)
