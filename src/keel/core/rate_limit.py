"""Rate limiting — token buckets for inbound admission control.

Manifesto:
A single noisy client should not be able to starve everyone else.
A token bucket per client admits short bursts up to ``capacity`` and
then settles to a sustained ``rate``; the decision is taken before any
routing work happens.

ARCHITECTURE
────────────
::

    TokenBucketLimiter   ─ steady rate + burst capacity, one bucket
    KeyedRateLimiter     ─ one TokenBucketLimiter per key (client IP)

    Refill and decrement happen under one lock, so two concurrent
    admission checks can never both spend the last token.

Example::

    limiter = KeyedRateLimiter(rate=10, capacity=20)
    if not limiter.acquire("203.0.113.7"):
        retry_after = limiter.get_wait_time("203.0.113.7")

Tags:
    keel, rate-limit, token-bucket, admission-control

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class TokenBucketLimiter:
    """Token bucket rate limiter.

    Tokens are added at a fixed rate up to capacity.
    Allows bursts up to capacity, then limits to rate.

    Attributes:
        rate: Tokens added per second
        capacity: Maximum tokens (burst size)
        clock: Monotonic time source (seconds)
    """

    rate: float
    capacity: float
    clock: Callable[[], float] = time.monotonic

    _tokens: float = field(default=0.0, init=False)
    _last_update: float = field(default=0.0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def __post_init__(self) -> None:
        """Start with a full bucket."""
        if self.rate <= 0 or self.capacity <= 0:
            raise ValueError("rate and capacity must be greater than zero")
        self._tokens = self.capacity
        self._last_update = self.clock()

    def _refill(self) -> None:
        now = self.clock()
        elapsed = max(0.0, now - self._last_update)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last_update = now

    def acquire(self, tokens: int = 1) -> bool:
        """Take *tokens* if available.  Never blocks."""
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def get_wait_time(self, tokens: int = 1) -> float:
        """Seconds until *tokens* are available (0 if available now)."""
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                return 0.0
            return (tokens - self._tokens) / self.rate

    @property
    def available_tokens(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    @property
    def is_full(self) -> bool:
        return self.available_tokens >= self.capacity


@dataclass
class KeyedRateLimiter:
    """One token bucket per key (per client IP, per API key, ...).

    Buckets are created lazily.  Every ``cleanup_interval`` acquires, buckets
    that have refilled completely are dropped; a dropped bucket is
    indistinguishable from a fresh one, so eviction never changes a decision.

    Example:
        >>> limiter = KeyedRateLimiter(rate=5, capacity=10)
        >>> limiter.acquire("10.0.0.1")
        True
    """

    rate: float
    capacity: float
    cleanup_interval: int = 1000
    clock: Callable[[], float] = time.monotonic

    _limiters: dict[str, TokenBucketLimiter] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)
    _acquire_count: int = field(default=0, init=False)

    def _get_limiter(self, key: str) -> TokenBucketLimiter:
        limiter = self._limiters.get(key)
        if limiter is None:
            limiter = TokenBucketLimiter(rate=self.rate, capacity=self.capacity, clock=self.clock)
            self._limiters[key] = limiter
        return limiter

    def _maybe_cleanup(self) -> None:
        self._acquire_count += 1
        if self._acquire_count < self.cleanup_interval:
            return
        self._acquire_count = 0
        idle = [key for key, limiter in self._limiters.items() if limiter.is_full]
        for key in idle:
            del self._limiters[key]

    def acquire(self, key: str, tokens: int = 1) -> bool:
        """Take *tokens* from the bucket for *key*."""
        with self._lock:
            self._maybe_cleanup()
            limiter = self._get_limiter(key)
        return limiter.acquire(tokens)

    def get_wait_time(self, key: str, tokens: int = 1) -> float:
        with self._lock:
            limiter = self._get_limiter(key)
        return limiter.get_wait_time(tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._limiters)


__all__ = ["KeyedRateLimiter", "TokenBucketLimiter"]
