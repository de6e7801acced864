import pytest

from domain.chat.rate_limiter import RateLimiter


@pytest.mark.asyncio
async def test_sixth_attempt_in_window_rejected_then_allowed_after_window():
    limiter = RateLimiter(window_ms=1000, max_per_window=5)
    results = [await limiter.attempt("s1", now=t) for t in (0, 100, 200, 300, 400, 500)]
    assert results == [True, True, True, True, True, False]
    assert await limiter.attempt("s1", now=1001) is True


@pytest.mark.asyncio
async def test_rejected_attempts_are_not_recorded():
    limiter = RateLimiter(window_ms=1000, max_per_window=1)
    assert await limiter.attempt("s1", now=0) is True
    assert await limiter.attempt("s1", now=500) is False
    # only the t=0 entry counts, so the window frees up at t=1000
    assert await limiter.attempt("s1", now=1000) is True


@pytest.mark.asyncio
async def test_windows_are_per_session():
    limiter = RateLimiter(window_ms=1000, max_per_window=1)
    assert await limiter.attempt("s1", now=0) is True
    assert await limiter.attempt("s2", now=0) is True
    assert await limiter.attempt("s1", now=1) is False


@pytest.mark.asyncio
async def test_release_resets_window():
    limiter = RateLimiter(window_ms=1000, max_per_window=1)
    await limiter.attempt("s1", now=0)
    await limiter.release("s1")
    assert await limiter.attempt("s1", now=1) is True


@pytest.mark.asyncio
async def test_retry_after():
    limiter = RateLimiter(window_ms=1000, max_per_window=1)
    assert await limiter.retry_after_ms("s1", now=0) == 0
    await limiter.attempt("s1", now=0)
    assert await limiter.retry_after_ms("s1", now=250) == 750


def test_invalid_configuration():
    with pytest.raises(ValueError):
        RateLimiter(window_ms=0)
