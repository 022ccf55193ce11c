import logging
import threading
import time
from typing import Callable, Dict, Optional

from venue_engine.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Absorbs float drift from refill arithmetic
_EPSILON = 1e-9


class TokenBucket:
    def __init__(self, capacity: int, refill_per_second: float, now: float):
        self.capacity = capacity
        self.refill_per_second = refill_per_second
        self.tokens = float(capacity)
        self.last_refill_at = now

    def refill(self, now: float) -> None:
        elapsed = now - self.last_refill_at
        if elapsed > 0:
            self.tokens = min(
                float(self.capacity), self.tokens + elapsed * self.refill_per_second
            )
        self.last_refill_at = max(self.last_refill_at, now)

    def take(self) -> bool:
        if self.tokens + _EPSILON < 1.0:
            return False
        self.tokens = max(0.0, self.tokens - 1.0)
        return True


class RateLimiter:
    """Non-blocking per-provider token buckets. Unknown keys are unlimited."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def configure(
        self, key: str, capacity: int, refill_per_second: Optional[float] = None
    ) -> None:
        if capacity < 1:
            raise ConfigurationError(f"Rate limit capacity for {key} must be >= 1")
        if refill_per_second is None:
            refill_per_second = capacity / 60.0
        if refill_per_second <= 0:
            raise ConfigurationError(f"Refill rate for {key} must be positive")
        with self._lock:
            self._buckets[key] = TokenBucket(capacity, refill_per_second, self._clock())

    def try_acquire(self, key: str) -> bool:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return True
            bucket.refill(self._clock())
            allowed = bucket.take()
        if not allowed:
            logger.debug(f"Rate limit bucket empty for {key}")
        return allowed

    def available(self, key: str) -> Optional[float]:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return None
            bucket.refill(self._clock())
            return bucket.tokens
