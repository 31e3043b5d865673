# tests/test_rate_limit.py
import pytest

from ai_bridge.rate_limit import UserRateLimiter, RateLimitExceededError, RETRY_AFTER_SECONDS

IDENTITY = "00Dxx0000001gPLEAY:005xx000001Sv6AAAS"


def test_tenth_request_admitted_eleventh_rejected(clock):
    limiter = UserRateLimiter(requests_per_minute=10, clock=clock)

    decisions = []
    for _ in range(11):
        decisions.append(limiter.admit(IDENTITY))
        clock.advance(1)

    assert all(d.allowed for d in decisions[:10])
    assert decisions[10].allowed is False
    assert decisions[10].retry_after_seconds == 60


def test_window_resets_after_sixty_seconds(clock):
    limiter = UserRateLimiter(requests_per_minute=10, clock=clock)
    for _ in range(10):
        limiter.admit(IDENTITY)
    assert limiter.admit(IDENTITY).allowed is False

    clock.advance(60)

    assert limiter.remaining(IDENTITY) == 10
    assert all(limiter.admit(IDENTITY).allowed for _ in range(10))


def test_rejected_requests_do_not_extend_the_window(clock):
    limiter = UserRateLimiter(requests_per_minute=2, clock=clock)
    limiter.admit(IDENTITY)
    limiter.admit(IDENTITY)

    clock.advance(30)
    assert limiter.admit(IDENTITY).allowed is False

    clock.advance(30)
    assert limiter.admit(IDENTITY).allowed is True


def test_identities_have_independent_windows(clock):
    limiter = UserRateLimiter(requests_per_minute=1, clock=clock)

    assert limiter.admit(IDENTITY).allowed
    assert limiter.admit("00Dxx0000001gPLEAY:005OTHERUSER").allowed
    assert not limiter.admit(IDENTITY).allowed


def test_cleanup_removes_only_idle_identities(clock):
    limiter = UserRateLimiter(requests_per_minute=10, idle_cooldown_seconds=300, clock=clock)
    limiter.admit("idle")
    clock.advance(250)
    limiter.admit("active")

    clock.advance(60)
    assert limiter.cleanup_idle_windows() == 1
    assert limiter.tracked_identities == 1
    assert limiter.remaining("active") == 10


def test_exceeded_error_carries_retry_after():
    error = RateLimitExceededError(RETRY_AFTER_SECONDS)

    assert error.status_code == 429
    assert error.detail["retryAfter"] == 60
    assert error.detail["error"] == "rate_limited"
    assert error.headers["Retry-After"] == "60"


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        UserRateLimiter(requests_per_minute=0)
