from request_pipeline.ratelimit import FixedWindowRateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_blocks_after_limit_until_window_resets():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(2, 60, clock=clock)

    assert limiter.hit("ip").remaining == 1
    assert limiter.hit("ip").remaining == 0

    clock.now += 15
    blocked = limiter.hit("ip")
    assert not blocked.allowed
    assert blocked.retry_after == 45

    clock.now += 45
    assert limiter.hit("ip").allowed


def test_keys_are_independent():
    limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())

    assert limiter.hit("a").allowed
    assert not limiter.hit("a").allowed
    assert limiter.hit("b").allowed
