import threading

from core.rate_limit import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = RateLimiter(3, 60, clock=clock)

    assert limiter.hit("u1") == (True, None)
    assert limiter.hit("u1") == (True, None)
    assert limiter.hit("u1") == (True, None)

    allowed, retry_in = limiter.hit("u1")
    assert not allowed
    assert 1 <= retry_in <= 60


def test_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(3, 60, clock=clock)
    for _ in range(3):
        limiter.hit("u1")

    clock.now += 61
    assert limiter.hit("u1")[0]


def test_keys_are_independent_and_reset_clears():
    limiter = RateLimiter(1, 60, clock=FakeClock())
    assert limiter.hit("a")[0]
    assert limiter.hit("b")[0]
    assert not limiter.hit("a")[0]

    limiter.reset("a")
    assert limiter.hit("a")[0]
    assert not limiter.hit("b")[0]

    limiter.reset()
    assert limiter.hit("b")[0]


def test_expired_keys_are_dropped():
    clock = FakeClock()
    limiter = RateLimiter(3, 60, clock=clock)
    for uid in ("a", "b", "c"):
        limiter.hit(uid)
    assert limiter.tracked_keys() == 3

    clock.now += 61
    limiter.hit("d")
    assert limiter.tracked_keys() == 1


def test_concurrent_hits_never_exceed_limit():
    limiter = RateLimiter(5, 60)
    results = []

    def worker():
        results.append(limiter.hit("shared")[0])

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 5
