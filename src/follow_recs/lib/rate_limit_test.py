import pytest

from .rate_limit import SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_admits_up_to_limit(clock):
    limiter = SlidingWindowRateLimiter(2, 1.0, clock=clock)
    assert limiter.allow("alice")
    assert limiter.allow("alice")
    assert not limiter.allow("alice")


def test_window_slides(clock):
    limiter = SlidingWindowRateLimiter(2, 1.0, clock=clock)
    limiter.allow("alice")
    clock.now += 0.5
    limiter.allow("alice")
    clock.now += 0.6
    # first event left the window, second is still inside
    assert limiter.allow("alice")
    assert not limiter.allow("alice")


def test_rejected_events_do_not_count(clock):
    limiter = SlidingWindowRateLimiter(1, 1.0, clock=clock)
    assert limiter.allow("alice")
    for _ in range(5):
        assert not limiter.allow("alice")
    clock.now += 1.0
    assert limiter.allow("alice")


def test_keys_are_independent(clock):
    limiter = SlidingWindowRateLimiter(1, 1.0, clock=clock)
    assert limiter.allow("alice")
    assert limiter.allow("bob")
    assert not limiter.allow("alice")


def test_reset(clock):
    limiter = SlidingWindowRateLimiter(1, 1.0, clock=clock)
    limiter.allow("alice")
    limiter.allow("bob")
    limiter.reset("alice")
    assert limiter.allow("alice")
    assert not limiter.allow("bob")
    limiter.reset()
    assert limiter.allow("bob")


@pytest.mark.parametrize("max_events,window", [(0, 1.0), (1, 0), (2, -1.0)])
def test_invalid_configuration(max_events, window):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_events, window)


def test_idle_keys_are_dropped(clock):
    limiter = SlidingWindowRateLimiter(2, 1.0, clock=clock)
    for i in range(50):
        limiter.allow(f"user{i}")
    assert len(limiter) == 50

    clock.now += 1.5
    assert limiter.allow("fresh")
    assert len(limiter) == 1


def test_active_keys_survive_sweep(clock):
    limiter = SlidingWindowRateLimiter(1, 1.0, clock=clock)
    limiter.allow("idle")
    clock.now += 0.8
    limiter.allow("busy")
    clock.now += 0.4
    # "idle" left the window, "busy" is still throttled
    assert not limiter.allow("busy")
    assert len(limiter) == 1
