"""Tests for RateLimiter class."""

import pytest
import time
import threading

from supersteaks.main import RateLimiter


class TestRateLimiter:
    """Tests for RateLimiter functionality."""

    def test_rate_limiter_init_default(self):
        """Initialize with default window."""
        limiter = RateLimiter()
        assert limiter.max_requests == 10
        assert limiter.window_seconds == 60

    def test_rate_limiter_init_custom(self):
        """Initialize with custom window."""
        limiter = RateLimiter(max_requests=3, window_seconds=5)
        assert limiter.max_requests == 3
        assert limiter.window_seconds == 5

    def test_try_acquire_first_request(self):
        """First request is allowed."""
        limiter = RateLimiter(max_requests=1, window_seconds=10)

        allowed, wait_seconds = limiter.try_acquire('u1:join')

        assert allowed is True
        assert wait_seconds == 0

    def test_try_acquire_within_window(self):
        """Requests beyond the limit inside the window are blocked."""
        limiter = RateLimiter(max_requests=2, window_seconds=5)

        assert limiter.try_acquire('u1:join')[0] is True
        assert limiter.try_acquire('u1:join')[0] is True

        allowed, wait = limiter.try_acquire('u1:join')
        assert allowed is False
        assert 0 < wait <= 5

    def test_keys_are_independent(self):
        """One user's requests do not use up another's."""
        limiter = RateLimiter(max_requests=1, window_seconds=10)

        assert limiter.try_acquire('u1:join')[0] is True
        assert limiter.try_acquire('u1:join')[0] is False
        assert limiter.try_acquire('u2:join')[0] is True

    def test_try_acquire_after_window(self):
        """Request allowed after the window slides past the first hit."""
        limiter = RateLimiter(max_requests=1, window_seconds=1)

        allowed1, _ = limiter.try_acquire('u1:join')
        assert allowed1 is True

        time.sleep(1.1)

        allowed2, wait2 = limiter.try_acquire('u1:join')
        assert allowed2 is True
        assert wait2 == 0

    def test_reset_clears_state(self):
        """Reset allows immediate request."""
        limiter = RateLimiter(max_requests=1, window_seconds=10)

        limiter.try_acquire('u1:join')
        allowed_before_reset, _ = limiter.try_acquire('u1:join')
        assert allowed_before_reset is False

        limiter.reset()

        allowed_after_reset, wait = limiter.try_acquire('u1:join')
        assert allowed_after_reset is True
        assert wait == 0

    def test_prunes_idle_keys(self):
        """Keys with no hits inside the window are forgotten."""
        limiter = RateLimiter(max_requests=1, window_seconds=1)
        limiter.PRUNE_THRESHOLD = 2
        for i in range(3):
            limiter.try_acquire(f'u{i}:join')

        time.sleep(1.1)
        limiter.try_acquire('fresh:join')

        assert set(limiter._hits) == {'fresh:join'}

    def test_try_acquire_thread_safe(self):
        """Concurrent access works correctly."""
        limiter = RateLimiter(max_requests=3, window_seconds=5)
        results = []

        def acquire():
            allowed, wait = limiter.try_acquire('u1:join')
            results.append((allowed, wait))

        threads = [threading.Thread(target=acquire) for _ in range(10)]

        for t in threads:
            t.start()

        for t in threads:
            t.join()

        allowed_count = sum(1 for allowed, _ in results if allowed)
        assert allowed_count == 3, "Exactly max_requests threads should acquire"

        blocked = [wait for allowed, wait in results if not allowed]
        assert all(wait > 0 for wait in blocked), "Blocked requests should have wait times"
