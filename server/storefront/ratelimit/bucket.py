# ─────────────────────────────────────────────────────────────────────────────
# Token Bucket — per-client admission primitive
# ─────────────────────────────────────────────────────────────────────────────
# Holds up to `capacity` tokens, refilled continuously at capacity/period
# tokens per second. Each admitted request spends one token.
#
# Thread-safe: FastAPI runs sync dependencies in a thread pool, so refill
# and spend happen together under one threading.Lock.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class TokenBucket:
    """Non-blocking token bucket with burst tolerance up to `capacity`.

    A fresh bucket starts full, so an idle client can burst `capacity`
    requests instantly and then waits for refill. Over any rolling
    `period` window at most `capacity` acquisitions succeed on top of
    the initial burst allowance.
    """

    def __init__(
        self,
        capacity: int,
        period: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")

        self._capacity = capacity
        self._period = period
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens = float(capacity)
        self._updated_at = clock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def tokens(self) -> float:
        """Tokens available right now (after refill)."""
        with self._lock:
            self._refill()
            return self._tokens

    def try_acquire(self) -> bool:
        """Spend one token if available. Never blocks or queues."""
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False

    def retry_after(self) -> float:
        """Seconds until one whole token is available (0 if one is now)."""
        with self._lock:
            self._refill()
            missing = 1.0 - self._tokens
            if missing <= 0:
                return 0.0
            return missing * self._period / self._capacity

    def _refill(self) -> None:
        # Caller holds self._lock
        now = self._clock()
        elapsed = now - self._updated_at
        if elapsed > 0:
            refill = elapsed * self._capacity / self._period
            self._tokens = min(float(self._capacity), self._tokens + refill)
        self._updated_at = now

