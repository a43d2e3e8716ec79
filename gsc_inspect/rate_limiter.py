from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict


@dataclass
class TokenBucket:
    partition_key: str
    tokens: float
    last_refill: float
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class RateLimiter:
    """Thread-safe token-bucket rate limiter keyed by partition (Search Console property).

    Every property gets its own bucket, created full on first use, refilling
    at requests_per_minute / 60 tokens per second. acquire() blocks only the
    callers waiting on the same property; other properties proceed freely."""

    def __init__(
        self,
        requests_per_minute: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be > 0")
        self._rate = requests_per_minute / 60.0
        # below 60 rpm a bucket would otherwise never hold a whole token
        self._capacity = max(1.0, self._rate)
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[str, TokenBucket] = {}
        self._registry_lock = threading.Lock()

    @property
    def capacity(self) -> float:
        return self._capacity

    @property
    def refill_rate(self) -> float:
        return self._rate

    def acquire(self, partition_key: str) -> None:
        """Block until a token is available for partition_key, then consume it."""
        bucket = self._get_bucket(partition_key)
        with bucket.lock:
            self._refill(bucket)
            if bucket.tokens < 1:
                wait = (1 - bucket.tokens) / self._rate
                self._sleep(wait)
                self._refill(bucket)
            bucket.tokens = max(0.0, bucket.tokens - 1)

    def tokens(self, partition_key: str) -> float:
        """Current token count for a partition, without refilling."""
        bucket = self._get_bucket(partition_key)
        with bucket.lock:
            return bucket.tokens

    def _get_bucket(self, partition_key: str) -> TokenBucket:
        with self._registry_lock:
            bucket = self._buckets.get(partition_key)
            if bucket is None:
                bucket = TokenBucket(partition_key, self._capacity, self._clock())
                self._buckets[partition_key] = bucket
            return bucket

    def _refill(self, bucket: TokenBucket) -> None:
        now = self._clock()
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(self._capacity, bucket.tokens + elapsed * self._rate)
        bucket.last_refill = now
