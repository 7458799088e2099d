import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from geousers.ratelimit import FixedWindowRateLimiter  # noqa: E402


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_blocks() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(3, 60, clock=clock)

    decisions = [limiter.hit("10.0.0.1") for _ in range(4)]

    assert [decision.allowed for decision in decisions] == [True, True, True, False]
    assert [decision.remaining for decision in decisions] == [2, 1, 0, 0]
    assert decisions[0].headers() == {
        "RateLimit-Limit": "3",
        "RateLimit-Remaining": "2",
        "RateLimit-Reset": "60",
    }
    assert decisions[-1].headers()["Retry-After"] == "60"


def test_window_resets_after_expiry() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(1, 60, clock=clock)

    assert limiter.hit("client").allowed
    clock.now += 30
    blocked = limiter.hit("client")
    assert not blocked.allowed
    assert blocked.reset_after == 30

    clock.now += 30
    assert limiter.hit("client").allowed


def test_clients_are_counted_separately() -> None:
    limiter = FixedWindowRateLimiter(1, 60, clock=FakeClock())

    assert limiter.hit("a").allowed
    assert limiter.hit("b").allowed
    assert not limiter.hit("a").allowed

    limiter.reset()
    assert limiter.hit("a").allowed


def test_concurrent_hits_never_exceed_limit() -> None:
    limiter = FixedWindowRateLimiter(50, 60)
    allowed = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(20):
            decision = limiter.hit("shared")
            with lock:
                allowed.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert allowed.count(True) == 50
    assert len(allowed) == 100


@pytest.mark.parametrize("limit, window", [(0, 60), (1, 0)])
def test_invalid_configuration(limit: int, window: int) -> None:
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(limit, window)
