"""Token-bucket pacing for metadata provider requests.

Each provider owns one bucket sized from its configured rate (MusicBrainz
1 req/s, Discogs 25 req/min, AcoustID 3 req/s by default). Batch searches
across many tracks therefore run as a paced sequence.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class TokenBucket:
    """Token bucket rate limiter.

    - Tokens refill continuously at `refill_rate` per second
    - Each request consumes one token (or more)
    - The bucket never holds more than `capacity` tokens
    """

    capacity: float
    refill_rate: float  # tokens per second
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    _tokens: float = field(init=False)
    _last_refill: float = field(init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.refill_rate <= 0:
            raise ValueError(f"refill_rate must be positive, got {self.refill_rate}")
        self._tokens = self.capacity
        self._last_refill = self.clock()

    @classmethod
    def per_second(cls, requests: float, **kwargs) -> TokenBucket:
        return cls(capacity=max(requests, 1.0), refill_rate=requests, **kwargs)

    @classmethod
    def per_minute(cls, requests: float, **kwargs) -> TokenBucket:
        return cls(capacity=max(requests, 1.0), refill_rate=requests / 60.0, **kwargs)

    def _refill(self) -> None:
        now = self.clock()
        elapsed = now - self._last_refill
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._last_refill = now

    def acquire(self, tokens: float = 1.0, blocking: bool = True) -> bool:
        """Take tokens, waiting for a refill when `blocking`.

        Returns False only in non-blocking mode when tokens are unavailable.
        """
        while True:
            with self._lock:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return True
                if not blocking:
                    return False
                wait = (tokens - self._tokens) / self.refill_rate

            # sleep outside the lock so other callers can check the bucket
            self.sleep(wait)

    def try_acquire(self, tokens: float = 1.0) -> bool:
        return self.acquire(tokens, blocking=False)

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def wait_time(self, tokens: float = 1.0) -> float:
        """Seconds until `tokens` are available (0 when they already are)."""
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                return 0.0
            return (tokens - self._tokens) / self.refill_rate


## Tests


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def test_token_bucket_try_acquire():
    clock = _FakeClock()
    bucket = TokenBucket(capacity=2, refill_rate=1.0, clock=clock, sleep=clock.sleep)
    assert bucket.try_acquire()
    assert bucket.try_acquire()
    assert not bucket.try_acquire()


def test_token_bucket_blocking_waits_for_refill():
    clock = _FakeClock()
    bucket = TokenBucket.per_second(1.0, clock=clock, sleep=clock.sleep)
    assert bucket.acquire()
    assert bucket.acquire()
    assert clock.now == 1.0


def test_token_bucket_wait_time():
    clock = _FakeClock()
    bucket = TokenBucket.per_minute(25, clock=clock, sleep=clock.sleep)
    for _ in range(25):
        assert bucket.try_acquire()
    assert abs(bucket.wait_time() - 60 / 25) < 1e-9
